"""Response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success/error wrapper.

    Error responses set ``success=False`` and a human-readable ``error``;
    rate-limit rejections also carry ``retry_after_s`` and ``tier``.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    code: str | None = Field(None, description="Machine-readable error kind.")
    request_id: str | None = None
    retry_after_s: int | None = None
    tier: Literal["burst", "minute"] | None = None
    timestamp_ms: int = Field(..., description="Wall-clock time the response was built.")
    response_time_ms: float | None = Field(
        None, description="Time spent handling the request in milliseconds."
    )
