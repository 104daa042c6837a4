"""Pydantic schemas for cache administration responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CacheStatus(BaseModel):
    """Snapshot of the user cache counters."""

    hits: int
    misses: int
    size: int
    evictions: int
    sample_keys: list[str] = Field(
        default_factory=list,
        description="Up to 10 cached keys, least recently used first.",
    )
    total_keys: int
    hit_rate_pct: float = Field(..., description="hits / (hits + misses) as a percentage.")
    average_latency_ms: float


class CacheClearResult(BaseModel):
    previous_size: int
    cleared_at: str


class CacheCleanupResult(BaseModel):
    entries_cleaned: int
    size_before: int
    size_after: int
    cleaned_at: str
