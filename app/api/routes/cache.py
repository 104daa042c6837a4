from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_user_service
from app.core.responses import success
from app.schemas.cache import CacheCleanupResult, CacheClearResult, CacheStatus
from app.schemas.envelope import ApiResponse
from app.services.user_service import UserService

router = APIRouter(tags=["Cache"])


@router.get(
    "/status",
    response_model=ApiResponse[CacheStatus],
    response_model_exclude_none=True,
)
def cache_status(
    request: Request,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[CacheStatus]:
    """Return cache counters, a sample of up to 10 keys and the hit rate."""
    return success(request, service.cache_status())


@router.delete(
    "",
    response_model=ApiResponse[CacheClearResult],
    response_model_exclude_none=True,
)
def clear_cache(
    request: Request,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[CacheClearResult]:
    """Drop every cached record and reset the hit/miss counters."""
    return success(request, service.clear_cache())


@router.post(
    "/cleanup",
    response_model=ApiResponse[CacheCleanupResult],
    response_model_exclude_none=True,
)
def cleanup_cache(
    request: Request,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[CacheCleanupResult]:
    """Remove expired entries now instead of waiting for the background sweep."""
    return success(request, service.cleanup_cache())
