"""Helpers building the response envelope.

Every response has the shape
``{success, data?, error?, timestamp_ms, response_time_ms?}``; error
responses additionally carry ``code`` and ``request_id``.
"""

from __future__ import annotations

import time
from typing import Any, TypeVar

from fastapi import Request

from app.core.clock import wall_clock_ms
from app.core.logging import get_request_id
from app.schemas.envelope import ApiResponse

T = TypeVar("T")


def elapsed_ms(request: Request) -> float | None:
    """Milliseconds since the request entered the middleware, if known."""
    started_at = getattr(request.state, "started_at", None)
    if started_at is None:
        return None
    return round((time.perf_counter() - started_at) * 1000, 2)


def success(request: Request, data: T) -> ApiResponse[T]:
    return ApiResponse(
        success=True,
        data=data,
        timestamp_ms=wall_clock_ms(),
        response_time_ms=elapsed_ms(request),
    )


def error_body(
    request: Request,
    *,
    code: str,
    message: str,
    **extra: Any,
) -> dict[str, Any]:
    """Build the JSON body of an error response (absent fields omitted)."""
    envelope = ApiResponse(
        success=False,
        error=message,
        code=code,
        request_id=get_request_id(),
        timestamp_ms=wall_clock_ms(),
        response_time_ms=elapsed_ms(request),
        **extra,
    )
    return envelope.model_dump(mode="json", exclude_none=True)
