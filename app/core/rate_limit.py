"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.

Rate limiting strategy:
- Two fixed windows per client (minute + burst), burst checked first.
- Client identity is the network peer address; requests without one share
  the ``"unknown"`` bucket.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request, Response

from app.adapters.rate_limit.base import RateLimitDecision
from app.core.dependencies import get_services
from app.core.errors import RateLimitedAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def get_client_id(request: Request) -> str:
    """Derive the limiter key from the peer address.

    Args:
        request: FastAPI request.

    Returns:
        str: Peer host, or ``"unknown"`` when absent/empty.
    """

    host = request.client.host if request.client else None
    return host or UNKNOWN_CLIENT


def _hash_client_id(client_id: str) -> str:
    """Hash the client identity for logging without exposing addresses."""
    return hashlib.sha256(client_id.encode()).hexdigest()[:16]


async def enforce_rate_limit(request: Request, response: Response) -> RateLimitDecision | None:
    """FastAPI dependency enforcing per-client rate limits.

    When enabled, admits one request from the client's budget. Admitted
    requests get the rate-limit headers on their response (also kept on
    ``request.state`` so error responses carry them). Rejected requests raise
    ``RateLimitedAppError``, rendered as HTTP 429.

    Args:
        request: FastAPI request.
        response: Response whose headers are merged into the route's result.

    Returns:
        The admission decision, or None when rate limiting is disabled.

    Raises:
        RateLimitedAppError: When the client exceeded the burst or minute tier.
    """

    services = get_services(request)
    limiter_settings = services.settings.limiter
    if not limiter_settings.enabled:
        return None

    client_id = get_client_id(request)
    decision = services.limiter.admit(client_id)

    if decision.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "client_hash": _hash_client_id(client_id),
                "minute_remaining": decision.minute.remaining,
                "burst_remaining": decision.burst.remaining,
            },
        )
        if limiter_settings.include_headers:
            request.state.rate_limit_headers = decision.headers
            response.headers.update(decision.headers)
        return decision

    retry_after = decision.retry_after_seconds or 0
    logger.info(
        "rate_limit.exceeded",
        extra={
            "client_hash": _hash_client_id(client_id),
            "tier": decision.tier,
            "retry_after_s": retry_after,
        },
    )

    if decision.tier == "burst":
        message = "Too many requests in burst window. Please slow down."
    else:
        message = "Rate limit exceeded. Too many requests per minute."

    raise RateLimitedAppError(
        code="rate_limited",
        message=message,
        details={"retry_after_s": retry_after, "tier": decision.tier or "minute"},
    )
