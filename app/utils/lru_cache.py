"""In-memory LRU cache with per-entry TTL used in front of the user store.

Thread-safe: every operation runs under a single lock and none of them block
on I/O. Expired entries are dropped lazily on ``get`` and eagerly by
``sweep``; ``put`` never evicts expired entries on its own, it only evicts
the least recently used key when the cache is full.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

from app.core.clock import monotonic_ms

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

# Number of recorded latencies kept for the running average
LATENCY_SAMPLES = 100


@dataclass
class CacheEntry(Generic[V]):
    """Container for cached values with freshness metadata."""

    value: V
    inserted_at: int
    ttl_ms: int

    def is_fresh(self, now: int) -> bool:
        # An entry exactly at its TTL boundary is still fresh.
        return now - self.inserted_at <= self.ttl_ms


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time copy of the cache counters."""

    hits: int
    misses: int
    size: int
    evictions: int
    capacity: int
    ttl_ms: int
    average_latency_ms: float

    @property
    def hit_rate_pct(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 2)


class LRUCache(Generic[K, V]):
    """Bounded key/value cache with strict LRU eviction and per-entry TTL.

    Recency is tracked by the order of an ``OrderedDict``: the first key is
    the least recently used, the last key the most recently used.

    Attributes:
        capacity: Maximum number of entries.
        ttl_ms: Default time-to-live applied by ``put``.
    """

    def __init__(
        self,
        capacity: int = 100,
        ttl_ms: int = 60_000,
        *,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries before LRU eviction.
            ttl_ms: Default freshness window in milliseconds.
            clock: Monotonic time source returning milliseconds.

        Raises:
            ValueError: If capacity or ttl_ms are invalid.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")

        self._capacity = capacity
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._store: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._latencies: deque[float] = deque(maxlen=LATENCY_SAMPLES)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"LRUCache(capacity={self._capacity}, ttl_ms={self._ttl_ms}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    def get(self, key: K) -> V | None:
        """Retrieve a cached value if it exists and is fresh.

        A hit promotes the key to most recently used. An expired entry is
        removed and reported as a miss.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found/expired.
        """

        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": str(key), "reason": "not_found"},
                )
                return None

            if not entry.is_fresh(now):
                del self._store[key]
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": str(key), "reason": "expired"},
                )
                return None

            self._hits += 1
            self._store.move_to_end(key)
            logger.debug("cache.hit", extra={"cache_key": str(key)})
            return entry.value

    def put(self, key: K, value: V, ttl_ms: int | None = None) -> None:
        """Insert or replace a value; the key becomes most recently used.

        When the key is absent and the cache is full, exactly one key is
        evicted: the least recently used one.

        Args:
            key: Cache key.
            value: Value to store.
            ttl_ms: Optional per-entry TTL overriding the default.

        Raises:
            ValueError: If ttl_ms is given and is not positive.
        """

        if ttl_ms is not None and ttl_ms < 1:
            raise ValueError("ttl_ms must be >= 1")

        entry = CacheEntry(
            value=value,
            inserted_at=self._clock(),
            ttl_ms=ttl_ms if ttl_ms is not None else self._ttl_ms,
        )
        with self._lock:
            if key not in self._store and len(self._store) >= self._capacity:
                evicted_key, _ = self._store.popitem(last=False)
                self._evictions += 1
                logger.debug(
                    "cache.evict",
                    extra={"cache_key": str(evicted_key), "size": len(self._store)},
                )

            self._store[key] = entry
            self._store.move_to_end(key)

            logger.debug(
                "cache.set",
                extra={
                    "cache_key": str(key),
                    "size": len(self._store),
                    "ttl_ms": entry.ttl_ms,
                },
            )

    def delete(self, key: K) -> bool:
        """Remove an entry; returns True if it was present."""

        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def sweep(self) -> int:
        """Remove every entry that is expired at the time the sweep starts.

        Returns:
            Number of entries removed.
        """

        now = self._clock()
        with self._lock:
            expired = [k for k, entry in self._store.items() if not entry.is_fresh(now)]
            for key in expired:
                del self._store[key]
            return len(expired)

    def keys(self) -> list[K]:
        """Snapshot of the cached keys, least to most recently used."""

        with self._lock:
            return list(self._store.keys())

    def record_latency(self, latency_ms: float) -> None:
        """Record a request latency for the running average in ``stats``."""

        with self._lock:
            self._latencies.append(latency_ms)

    def stats(self) -> CacheStats:
        """Return a copy of the cache counters without exposing values."""

        with self._lock:
            average = sum(self._latencies) / len(self._latencies) if self._latencies else 0.0
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                size=len(self._store),
                evictions=self._evictions,
                capacity=self._capacity,
                ttl_ms=self._ttl_ms,
                average_latency_ms=average,
            )
