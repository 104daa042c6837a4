from __future__ import annotations

from fastapi import APIRouter

router = APIRouter()


@router.get("/", include_in_schema=False)
def service_info() -> dict:
    """Describe the service and list its endpoints."""

    return {
        "message": "User Data API with Advanced Caching",
        "version": "1.0.0",
        "endpoints": {
            "users": "/api/users",
            "cache": "/api/cache",
            "health": "/api/health",
        },
    }
