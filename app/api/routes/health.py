from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request

from app.core.clock import utc_now_iso
from app.core.dependencies import ServiceContainer, get_services
from app.core.responses import success
from app.schemas.envelope import ApiResponse

router = APIRouter(tags=["Health"])

_STARTED_AT = time.monotonic()


@router.get("", response_model=ApiResponse[dict], response_model_exclude_none=True)
def health_check(
    request: Request,
    services: ServiceContainer = Depends(get_services),
) -> ApiResponse[dict]:
    """Health check endpoint.

    Reports uptime and a snapshot of the cache, limiter and coalescer
    counters. Used by load balancers and monitoring systems to determine
    service health.
    """

    cache_stats = services.cache.stats()
    return success(
        request,
        {
            "status": "healthy",
            "timestamp": utc_now_iso(),
            "uptime_s": round(time.monotonic() - _STARTED_AT, 3),
            "cache": {
                "size": cache_stats.size,
                "hits": cache_stats.hits,
                "misses": cache_stats.misses,
                "evictions": cache_stats.evictions,
            },
            "rate_limiter": services.limiter.stats(),
            "coalescer": services.coalescer.stats(),
            "maintenance_running": services.maintenance.running,
        },
    )


@router.get("/live", response_model=ApiResponse[dict], response_model_exclude_none=True)
def liveness(request: Request) -> ApiResponse[dict]:
    return success(request, {"status": "alive", "timestamp": utc_now_iso()})


@router.get("/ready", response_model=ApiResponse[dict], response_model_exclude_none=True)
def readiness(request: Request) -> ApiResponse[dict]:
    return success(request, {"status": "ready", "timestamp": utc_now_iso()})
