"""Component wiring and FastAPI accessors.

Each component is constructed once per application by ``build_services`` and
stored on ``app.state.services``; route handlers reach it through the
``get_*`` dependencies below rather than module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from app.adapters.rate_limit.in_memory import InMemoryTwoTierRateLimiter
from app.adapters.store.base import AbstractUserStore
from app.adapters.store.in_memory import SEED_USERS, InMemoryUserStore
from app.core.config import Settings
from app.schemas.user import UserRecord
from app.services.coalescer import RequestCoalescer
from app.services.maintenance import MaintenanceScheduler
from app.services.user_service import UserService
from app.utils.lru_cache import LRUCache


@dataclass
class ServiceContainer:
    """Every stateful component of one application instance."""

    settings: Settings
    store: AbstractUserStore
    cache: LRUCache[str, UserRecord]
    limiter: InMemoryTwoTierRateLimiter
    coalescer: RequestCoalescer[UserRecord]
    user_service: UserService
    maintenance: MaintenanceScheduler


def build_services(settings: Settings, *, store: AbstractUserStore | None = None) -> ServiceContainer:
    """Construct all components from settings.

    Args:
        settings: Resolved application settings.
        store: Optional store override (tests substitute fakes here).

    Returns:
        ServiceContainer with maintenance jobs registered but not started.
    """

    if store is None:
        store = InMemoryUserStore(
            latency_ms=settings.store.latency_ms,
            records=SEED_USERS if settings.store.seed_users else (),
        )

    cache: LRUCache[str, UserRecord] = LRUCache(
        capacity=settings.cache.capacity,
        ttl_ms=settings.cache.ttl_ms,
    )
    limiter = InMemoryTwoTierRateLimiter(
        minute_capacity=settings.limiter.minute_capacity,
        burst_capacity=settings.limiter.burst_capacity,
        minute_window_ms=settings.limiter.minute_window_ms,
        burst_window_ms=settings.limiter.burst_window_ms,
    )
    coalescer: RequestCoalescer[UserRecord] = RequestCoalescer(
        stale_ms=settings.coalescer.stale_ms,
    )

    maintenance = MaintenanceScheduler()
    maintenance.add_job("cache_sweep", settings.cache.sweep_interval_ms, cache.sweep)
    maintenance.add_job("limiter_sweep", settings.limiter.sweep_interval_ms, limiter.sweep)
    maintenance.add_job("coalescer_sweep", settings.coalescer.sweep_interval_ms, coalescer.sweep)

    return ServiceContainer(
        settings=settings,
        store=store,
        cache=cache,
        limiter=limiter,
        coalescer=coalescer,
        user_service=UserService(store=store, cache=cache, coalescer=coalescer),
        maintenance=maintenance,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_user_service(request: Request) -> UserService:
    return get_services(request).user_service
