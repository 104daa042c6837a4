"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return the service's JSON envelope with proper
HTTP status codes and traceability.

Design:
- AppError subclasses → their status (400, 404, 429, 500, 504)
- Request validation errors → 400 invalid_request
- Starlette HTTP errors (unknown route, wrong method) → their status
- Unexpected Exception → generic 500 (safety net)
- All error bodies include request_id for distributed tracing
- Rate-limit headers of an admitted request survive a failing handler
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import (
    AppError,
    CoalescerTimeoutError,
    RateLimitedAppError,
    StoreAppError,
)
from app.core.logging import get_request_id
from app.core.responses import error_body

logger = logging.getLogger(__name__)


def _admitted_headers(request: Request) -> dict[str, str]:
    return dict(getattr(request.state, "rate_limit_headers", None) or {})


def _include_limit_headers(request: Request) -> bool:
    services = getattr(request.app.state, "services", None)
    return services is None or services.settings.limiter.include_headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with the response envelope.

    Routes domain errors to the HTTP status declared on the error class.
    Expected outcomes (not found, rate limited, bad input) are logged at
    info; timeouts and store failures are logged with context at warning
    and error.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error envelope.
    """
    status_code = exc.status_code
    log_extra = {
        "error_code": exc.code,
        "error_message": exc.message,
        "status_code": status_code,
        "has_details": bool(exc.details),
        "request_path": request.url.path,
        "request_id": get_request_id(),
    }
    if isinstance(exc, StoreAppError):
        logger.error("app_error_handled", extra=log_extra)
    elif isinstance(exc, CoalescerTimeoutError):
        logger.warning("app_error_handled", extra={**log_extra, "details": exc.details})
    else:
        logger.info("app_error_handled", extra=log_extra)

    headers = _admitted_headers(request)
    extra: dict = {}
    if isinstance(exc, RateLimitedAppError):
        details = exc.details or {}
        extra["retry_after_s"] = details.get("retry_after_s", 0)
        extra["tier"] = details.get("tier")
        if _include_limit_headers(request):
            headers["Retry-After"] = str(extra["retry_after_s"])

    return JSONResponse(
        status_code=status_code,
        content=error_body(request, code=exc.code, message=exc.message, **extra),
        headers=headers or None,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map FastAPI request validation failures to ``invalid_request``."""
    errors = exc.errors()
    fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in errors]
    fields = [f for f in fields if f]
    message = "Invalid request."
    if fields:
        message = f"Invalid request. Check fields: {', '.join(sorted(set(fields)))}."

    logger.info(
        "request_validation_failed",
        extra={"fields": fields, "request_path": request.url.path},
    )
    return JSONResponse(
        status_code=400,
        content=error_body(request, code="invalid_request", message=message),
        headers=_admitted_headers(request) or None,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render Starlette HTTP errors (e.g. unknown routes) in the envelope."""
    if exc.status_code == 404:
        code, message = "not_found", "Endpoint not found"
    else:
        code, message = "http_error", str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, code=code, message=message),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Catches any exception not handled by specific handlers.
    Logs detailed information for debugging while returning generic message.
    Prevents information leakage (no stack traces to client).

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content=error_body(
            request,
            code="internal_error",
            message="An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.
    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> from app.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
        >>> # Now all errors are handled consistently
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
