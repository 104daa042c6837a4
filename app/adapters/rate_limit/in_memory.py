"""In-memory two-tier fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows are fixed, not sliding: each client's window starts at its first
  request and advances by exactly one window length on rollover.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision, Tier, TierStatus
from app.core.clock import format_epoch_ms, monotonic_ms, wall_clock_ms

logger = logging.getLogger(__name__)


@dataclass
class ClientWindowState:
    minute_count: int
    minute_reset_at: int
    burst_count: int
    burst_reset_at: int


class InMemoryTwoTierRateLimiter(AbstractRateLimiter):
    """Rate limiter enforcing a minute window and a shorter burst window.

    The burst tier is checked first: when both tiers would reject, the
    reported tier is ``burst``.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        minute_capacity: int = 10,
        burst_capacity: int = 5,
        minute_window_ms: int = 60_000,
        burst_window_ms: int = 10_000,
        clock: Callable[[], int] = monotonic_ms,
        wall_clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            minute_capacity: Maximum admits per minute window.
            burst_capacity: Maximum admits per burst window.
            minute_window_ms: Length of the minute window in milliseconds.
            burst_window_ms: Length of the burst window in milliseconds.
            clock: Monotonic time source returning milliseconds.
            wall_clock: Epoch time source in milliseconds, used only to format
                reset timestamps.

        Raises:
            ValueError: If a capacity or window is invalid.
        """
        if minute_capacity < 1:
            raise ValueError("minute_capacity must be >= 1")
        if burst_capacity < 1:
            raise ValueError("burst_capacity must be >= 1")
        if minute_window_ms < 1:
            raise ValueError("minute_window_ms must be >= 1")
        if burst_window_ms < 1:
            raise ValueError("burst_window_ms must be >= 1")

        self._minute_capacity = minute_capacity
        self._burst_capacity = burst_capacity
        self._minute_window_ms = minute_window_ms
        self._burst_window_ms = burst_window_ms
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.RLock()
        self._state_by_client: dict[str, ClientWindowState] = {}
        self._admitted = 0
        self._rejected: dict[Tier, int] = {"burst": 0, "minute": 0}

    @property
    def minute_capacity(self) -> int:
        return self._minute_capacity

    @property
    def burst_capacity(self) -> int:
        return self._burst_capacity

    def _get_or_roll_state(self, client_id: str, now: int) -> ClientWindowState:
        """Get the client's state, creating it or rolling expired windows over."""
        state = self._state_by_client.get(client_id)
        if state is None:
            state = ClientWindowState(
                minute_count=0,
                minute_reset_at=now + self._minute_window_ms,
                burst_count=0,
                burst_reset_at=now + self._burst_window_ms,
            )
            self._state_by_client[client_id] = state

        if now >= state.minute_reset_at:
            state.minute_count = 0
            state.minute_reset_at = now + self._minute_window_ms
        if now >= state.burst_reset_at:
            state.burst_count = 0
            state.burst_reset_at = now + self._burst_window_ms
        return state

    def _format_reset(self, reset_at: int, now: int) -> str:
        return format_epoch_ms(self._wall_clock() + (reset_at - now))

    def _tier_statuses(self, state: ClientWindowState, now: int) -> tuple[TierStatus, TierStatus]:
        minute = TierStatus(
            limit=self._minute_capacity,
            remaining=max(0, self._minute_capacity - state.minute_count),
            reset_at=self._format_reset(state.minute_reset_at, now),
        )
        burst = TierStatus(
            limit=self._burst_capacity,
            remaining=max(0, self._burst_capacity - state.burst_count),
            reset_at=self._format_reset(state.burst_reset_at, now),
        )
        return minute, burst

    @staticmethod
    def _build_headers(minute: TierStatus, burst: TierStatus) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(minute.limit),
            "X-RateLimit-Remaining": str(minute.remaining),
            "X-RateLimit-Reset": minute.reset_at,
            "X-Burst-Limit": str(burst.limit),
            "X-Burst-Remaining": str(burst.remaining),
            "X-Burst-Reset": burst.reset_at,
        }

    def _build_blocked_decision(
        self, state: ClientWindowState, *, tier: Tier, reset_at: int, now: int
    ) -> RateLimitDecision:
        self._rejected[tier] += 1
        minute, burst = self._tier_statuses(state, now)
        return RateLimitDecision(
            allowed=False,
            minute=minute,
            burst=burst,
            tier=tier,
            retry_after_seconds=max(0, math.ceil((reset_at - now) / 1000)),
        )

    def admit(self, client_id: str, now: int | None = None) -> RateLimitDecision:
        """Admit or reject one request for the client.

        This method both checks the current window usage and mutates the state
        if the request is allowed.

        Args:
            client_id: Client identity.
            now: Optional monotonic time in milliseconds.

        Returns:
            RateLimitDecision with allowance decision and metadata.

        Raises:
            ValueError: If client_id is empty.
        """
        if not client_id:
            raise ValueError("client_id must be a non-empty string")

        if now is None:
            now = self._clock()

        with self._lock:
            state = self._get_or_roll_state(client_id, now)

            if state.burst_count >= self._burst_capacity:
                return self._build_blocked_decision(
                    state, tier="burst", reset_at=state.burst_reset_at, now=now
                )
            if state.minute_count >= self._minute_capacity:
                return self._build_blocked_decision(
                    state, tier="minute", reset_at=state.minute_reset_at, now=now
                )

            state.minute_count += 1
            state.burst_count += 1
            self._admitted += 1
            minute, burst = self._tier_statuses(state, now)

        return RateLimitDecision(
            allowed=True,
            minute=minute,
            burst=burst,
            headers=self._build_headers(minute, burst),
        )

    def sweep(self, now: int | None = None) -> int:
        """Remove clients whose minute and burst windows have both elapsed.

        Returns:
            Number of client entries removed.
        """
        if now is None:
            now = self._clock()

        with self._lock:
            idle = [
                client_id
                for client_id, state in self._state_by_client.items()
                if now >= state.minute_reset_at and now >= state.burst_reset_at
            ]
            for client_id in idle:
                del self._state_by_client[client_id]
            return len(idle)

    def get_status(self, client_id: str) -> ClientWindowState | None:
        """Return a copy of the client's window state, if tracked."""
        with self._lock:
            state = self._state_by_client.get(client_id)
            return replace(state) if state is not None else None

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "clients": len(self._state_by_client),
                "admitted": self._admitted,
                "rejected_burst": self._rejected["burst"],
                "rejected_minute": self._rejected["minute"],
            }
