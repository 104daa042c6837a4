from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (components, middleware, handlers, routers,
background maintenance) so tests can build isolated instances with their own
settings.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.store.base import AbstractUserStore
from app.api.routes import cache_router, health_router, root_router, users_router
from app.core.config import Settings, settings as default_settings
from app.core.dependencies import build_services
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import TAGS_METADATA, apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start background sweeps on startup; stop them and in-flight fetches on shutdown."""
    services = app.state.services
    if services.settings.app.maintenance_enabled:
        await services.maintenance.start()
    try:
        yield
    finally:
        await services.maintenance.stop()
        await services.coalescer.shutdown()
        logger.info("app.shutdown_complete")


def create_app(
    settings: Settings | None = None,
    *,
    store: AbstractUserStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        settings: Optional settings; defaults to the environment-derived ones.
        store: Optional user store replacing the in-memory default.

    Returns:
        Configured FastAPI app with components, middleware, handlers and routers.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log, debug=cfg.app.debug)

    app = FastAPI(
        title=cfg.app.title,
        description=(
            "Serves user records from a backing store behind a bounded LRU cache "
            "with per-entry TTL, per-client two-tier rate limiting (minute and "
            "burst windows) and single-flight coalescing of concurrent lookups."
        ),
        version="1.0.0",
        openapi_tags=TAGS_METADATA,
        lifespan=lifespan,
    )
    app.state.services = build_services(cfg, store=store)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(root_router)
    app.include_router(users_router, prefix="/api/users")
    app.include_router(cache_router, prefix="/api/cache")
    app.include_router(health_router, prefix="/api/health")

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "app_env": cfg.app_env,
            "cache_capacity": cfg.cache.capacity,
            "cache_ttl_ms": cfg.cache.ttl_ms,
            "limiter_enabled": cfg.limiter.enabled,
        },
    )
    return app
