"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class CacheSettings(BaseSettings):
    """User record cache configuration."""

    capacity: int = Field(
        100,
        description="Maximum number of cached records before LRU eviction",
        ge=1,
    )
    ttl_ms: int = Field(
        60_000,
        description="Freshness window applied to each cached record (milliseconds)",
        ge=1,
    )
    sweep_interval_ms: int = Field(
        30_000,
        description="Interval between background sweeps of expired entries",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class LimiterSettings(BaseSettings):
    """Two-tier (minute + burst) fixed-window rate limiter configuration."""

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on user endpoints",
    )
    minute_capacity: int = Field(
        10,
        description="Maximum admits per client per minute window",
        ge=1,
    )
    burst_capacity: int = Field(
        5,
        description="Maximum admits per client per burst window",
        ge=1,
    )
    minute_window_ms: int = Field(60_000, ge=1)
    burst_window_ms: int = Field(10_000, ge=1)
    sweep_interval_ms: int = Field(
        60_000,
        description="Interval between background sweeps of idle clients",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-*, X-Burst-* and Retry-After headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class CoalescerSettings(BaseSettings):
    """Single-flight request coalescer configuration."""

    stale_ms: int = Field(
        30_000,
        description="Maximum age of a pending fetch group before waiters time out",
        ge=1,
    )
    sweep_interval_ms: int = Field(60_000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="COALESCER_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Backing user store configuration."""

    latency_ms: int = Field(
        200,
        description="Simulated lookup delay of the in-memory store (milliseconds)",
        ge=0,
    )
    seed_users: bool = Field(
        True,
        description="Seed the in-memory store with sample users on startup",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read/propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    title: str = Field("User Cache API", description="Service name shown in docs")
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    maintenance_enabled: bool = Field(
        True,
        description="Run periodic cache/limiter/coalescer sweeps in the background",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is out of range.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    limiter: LimiterSettings = Field(default_factory=LimiterSettings)
    coalescer: CoalescerSettings = Field(default_factory=CoalescerSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
