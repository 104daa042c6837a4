"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses. Each error carries a
stable ``code`` that matches one of the service's error kinds:
``invalid_request``, ``rate_limited``, ``not_found``, ``timeout`` and
``internal_error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    user_id: int
    key: str
    age_ms: int
    retry_after_s: int
    tier: str
    field: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code = 500

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""

    status_code = 400


class RateLimitedAppError(AppError):
    """Raised when the rate limiter rejects a client."""

    status_code = 429


class UserNotFoundError(AppError):
    """Raised by the store when no record exists for the requested id."""

    status_code = 404


class CoalescerTimeoutError(AppError):
    """Delivered to waiters of a pending fetch that was reclaimed as stale."""

    status_code = 504


class StoreAppError(AppError):
    """Raised when the backing store fails for any other reason."""

    status_code = 500
