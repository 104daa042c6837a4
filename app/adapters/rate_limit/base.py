"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later (e.g., Redis) with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

Tier = Literal["burst", "minute"]


@dataclass(frozen=True)
class TierStatus:
    """Usage of one fixed window for one client.

    Attributes:
        limit: Max admits per window.
        remaining: Admits left in the current window.
        reset_at: Formatted absolute time (ISO-8601 UTC) when the window resets.
    """

    limit: int
    remaining: int
    reset_at: str


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of an admission check.

    Attributes:
        allowed: Whether the request is admitted.
        minute: Minute-window usage after this decision.
        burst: Burst-window usage after this decision.
        tier: Tier that rejected the request (None when allowed).
        retry_after_seconds: Seconds until the rejecting window resets.
    """

    allowed: bool
    minute: TierStatus
    burst: TierStatus
    tier: Tier | None = None
    retry_after_seconds: int | None = None
    headers: dict[str, str] = field(default_factory=dict)


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def admit(self, client_id: str, now: int | None = None) -> RateLimitDecision:
        """Admit or reject one request for a client.

        Args:
            client_id: Client identity (e.g., peer address).
            now: Optional monotonic time in milliseconds; defaults to the
                limiter's clock.

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now: int | None = None) -> int:
        """Drop state for idle clients and return how many were removed."""
        raise NotImplementedError
