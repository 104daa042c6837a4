"""User request pipeline: cache lookup, coalesced store fetch, cache fill.

This service is the core business logic behind the user endpoints. It handles:
- Input validation of user ids
- Cache-first reads with single-flight fetches on miss
- Cache population on create and on successful fetch
- Cache administration (status, clear, cleanup)

Admission control runs before the service is invoked (see
``app.core.rate_limit``).
"""

from __future__ import annotations

import logging
import time
from typing import Any

from app.adapters.store.base import AbstractUserStore
from app.core.clock import utc_now_iso
from app.core.errors import UserNotFoundError, ValidationAppError
from app.schemas.cache import CacheCleanupResult, CacheClearResult, CacheStatus
from app.schemas.user import UserRecord
from app.services.coalescer import RequestCoalescer
from app.utils.lru_cache import LRUCache

logger = logging.getLogger(__name__)

# Number of keys included in the cache status sample
STATUS_SAMPLE_KEYS = 10


def user_cache_key(user_id: int) -> str:
    """Build the cache key for a user id."""
    return f"user:{user_id}"


def parse_user_id(raw: Any) -> int:
    """Parse and validate a user id.

    Args:
        raw: Raw id as received (path segment, query value or int).

    Returns:
        The id as a positive integer.

    Raises:
        ValidationAppError: If the id is not a positive integer.
    """
    if isinstance(raw, bool):
        raw = None
    try:
        user_id = int(str(raw).strip())
    except (TypeError, ValueError):
        user_id = 0

    if user_id < 1:
        raise ValidationAppError(
            code="invalid_request",
            message="Invalid user ID. Must be a positive integer.",
            details={"field": "id"},
        )
    return user_id


class UserService:
    """Serves user records from the cache, falling back to the store."""

    def __init__(
        self,
        *,
        store: AbstractUserStore,
        cache: LRUCache[str, UserRecord],
        coalescer: RequestCoalescer[UserRecord],
    ) -> None:
        self._store = store
        self._cache = cache
        self._coalescer = coalescer

    async def get_user(self, user_id: int) -> UserRecord:
        """Return the record for ``user_id``.

        On a cache miss the store lookup goes through the coalescer, so
        concurrent misses for the same id share a single lookup. The fetched
        record is cached inside the coalesced fetch: once per lookup, and
        even if every waiting caller has gone away.

        Raises:
            UserNotFoundError: If the store has no such user (not cached).
            CoalescerTimeoutError: If the pending fetch was reclaimed as stale.
            StoreAppError: On other store failures.
        """
        start = time.perf_counter()
        key = user_cache_key(user_id)

        try:
            cached = self._cache.get(key)
            if cached is not None:
                logger.info("user.cache_hit", extra={"user_id": user_id})
                return cached

            logger.info("user.cache_miss", extra={"user_id": user_id})

            async def fetch() -> UserRecord:
                record = await self._store.lookup(user_id)
                self._cache.put(key, record)
                return record

            try:
                return await self._coalescer.do(user_id, fetch)
            except UserNotFoundError:
                logger.info("user.not_found", extra={"user_id": user_id})
                raise
        finally:
            self._cache.record_latency((time.perf_counter() - start) * 1000)

    async def create_user(self, name: str, email: str) -> UserRecord:
        """Create a user in the store and cache it immediately."""
        record = await self._store.create(name=name, email=email)
        self._cache.put(user_cache_key(record.id), record)
        logger.info("user.created", extra={"user_id": record.id})
        return record

    async def list_users(self) -> list[UserRecord]:
        return await self._store.list()

    def cache_status(self) -> CacheStatus:
        stats = self._cache.stats()
        keys = self._cache.keys()
        return CacheStatus(
            hits=stats.hits,
            misses=stats.misses,
            size=stats.size,
            evictions=stats.evictions,
            sample_keys=keys[:STATUS_SAMPLE_KEYS],
            total_keys=len(keys),
            hit_rate_pct=stats.hit_rate_pct,
            average_latency_ms=round(stats.average_latency_ms, 2),
        )

    def clear_cache(self) -> CacheClearResult:
        previous_size = self._cache.stats().size
        self._cache.clear()
        logger.info("cache.cleared", extra={"previous_size": previous_size})
        return CacheClearResult(previous_size=previous_size, cleared_at=utc_now_iso())

    def cleanup_cache(self) -> CacheCleanupResult:
        size_before = self._cache.stats().size
        cleaned = self._cache.sweep()
        size_after = self._cache.stats().size
        logger.info(
            "cache.cleanup",
            extra={"entries_cleaned": cleaned, "size_after": size_after},
        )
        return CacheCleanupResult(
            entries_cleaned=cleaned,
            size_before=size_before,
            size_after=size_after,
            cleaned_at=utc_now_iso(),
        )
