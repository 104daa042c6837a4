"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the testing environment before any app imports so settings never
pick up a developer's .env file, and provides app/client factories with
fast, isolated components.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import (
    AppSettings,
    CacheSettings,
    CoalescerSettings,
    LimiterSettings,
    Settings,
    StoreSettings,
)

# Store latency used by HTTP tests; large enough to measure, small enough to be fast
TEST_STORE_LATENCY_MS = 50


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with test defaults; keyword args replace whole sections."""

    def _make(**sections) -> Settings:
        defaults = {
            "app": AppSettings(maintenance_enabled=False),
            "cache": CacheSettings(),
            "limiter": LimiterSettings(),
            "coalescer": CoalescerSettings(),
            "store": StoreSettings(latency_ms=TEST_STORE_LATENCY_MS),
        }
        defaults.update(sections)
        return Settings(**defaults)

    return _make


@pytest.fixture
def app(make_settings) -> FastAPI:
    return create_app(make_settings())


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)
