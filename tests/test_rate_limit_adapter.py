"""Unit tests for the in-memory two-tier rate limiter adapter."""

from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.in_memory import InMemoryTwoTierRateLimiter

# 2026-01-01T00:00:00Z in epoch milliseconds
WALL_START_MS = 1_767_225_600_000


def _limiter(clock: Mock, **kwargs) -> InMemoryTwoTierRateLimiter:
    return InMemoryTwoTierRateLimiter(
        clock=clock,
        wall_clock=Mock(return_value=WALL_START_MS),
        **kwargs,
    )


def test_burst_tier_admits_five_then_rejects_sixth() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock)

    for i in range(5):
        clock.return_value = i * 1_000
        assert limiter.admit("client").allowed is True

    clock.return_value = 5_500
    blocked = limiter.admit("client")

    assert blocked.allowed is False
    assert blocked.tier == "burst"
    # ceil((10_000 - 5_500) / 1000)
    assert blocked.retry_after_seconds == 5
    assert blocked.headers == {}


def test_minute_tier_rejects_after_ten_admits() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock)

    # Two bursts of five, separated by a burst rollover
    for t in (0, 1, 2, 3, 4, 10_000, 10_001, 10_002, 10_003, 10_004):
        assert limiter.admit("client", now=t).allowed is True

    blocked = limiter.admit("client", now=20_000)

    assert blocked.allowed is False
    assert blocked.tier == "minute"
    assert blocked.retry_after_seconds == 40


def test_burst_tier_reported_when_both_tiers_would_reject() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock, minute_capacity=3, burst_capacity=3)

    for _ in range(3):
        assert limiter.admit("client").allowed is True

    blocked = limiter.admit("client")
    assert blocked.tier == "burst"


def test_minute_window_rollover_restores_budget() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock, minute_capacity=10, burst_capacity=10)

    for _ in range(10):
        assert limiter.admit("x").allowed is True
    assert limiter.admit("x").allowed is False

    clock.return_value = 60_001
    decision = limiter.admit("x")

    assert decision.allowed is True
    assert decision.minute.remaining == 9
    assert decision.headers["X-RateLimit-Remaining"] == "9"


def test_reset_advances_by_exactly_one_window_from_rollover() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock)

    limiter.admit("x")
    assert limiter.get_status("x").minute_reset_at == 60_000

    limiter.admit("x", now=75_000)
    status = limiter.get_status("x")
    assert status.minute_reset_at == 135_000
    assert status.minute_count == 1


def test_admitted_decision_carries_headers() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock)

    decision = limiter.admit("client")

    assert decision.allowed is True
    assert decision.headers == {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "9",
        "X-RateLimit-Reset": "2026-01-01T00:01:00.000Z",
        "X-Burst-Limit": "5",
        "X-Burst-Remaining": "4",
        "X-Burst-Reset": "2026-01-01T00:00:10.000Z",
    }


def test_isolated_by_client() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock, burst_capacity=1)

    assert limiter.admit("k1").allowed is True
    assert limiter.admit("k1").allowed is False

    assert limiter.admit("k2").allowed is True


def test_rejections_do_not_consume_budget() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock, burst_capacity=1)

    limiter.admit("k")
    for _ in range(5):
        limiter.admit("k")

    assert limiter.get_status("k").minute_count == 1
    assert limiter.stats()["rejected_burst"] == 5


def test_sweep_removes_only_idle_clients() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock)

    limiter.admit("idle", now=0)
    limiter.admit("active", now=30_000)

    assert limiter.sweep(now=60_000) == 1
    assert limiter.get_status("idle") is None
    assert limiter.get_status("active") is not None
    assert limiter.stats()["clients"] == 1


def test_sweep_does_not_affect_surviving_clients() -> None:
    clock = Mock(return_value=0)
    limiter = _limiter(clock)

    for _ in range(3):
        limiter.admit("c", now=0)
    limiter.sweep(now=5_000)

    assert limiter.admit("c", now=5_000).burst.remaining == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"minute_capacity": 0},
        {"burst_capacity": 0},
        {"minute_window_ms": 0},
        {"burst_window_ms": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryTwoTierRateLimiter(**kwargs)


def test_invalid_admit_args() -> None:
    limiter = InMemoryTwoTierRateLimiter()

    with pytest.raises(ValueError):
        limiter.admit("")
