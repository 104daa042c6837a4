"""Tests for the background MaintenanceScheduler."""

import asyncio
import logging

import pytest

from app.core.dependencies import build_services
from app.services.maintenance import MaintenanceScheduler


class CountingJob:
    def __init__(self, removed: int = 0, error: Exception | None = None) -> None:
        self.calls = 0
        self.removed = removed
        self.error = error

    def __call__(self) -> int:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.removed


@pytest.mark.asyncio
async def test_jobs_run_periodically_until_stopped() -> None:
    scheduler = MaintenanceScheduler()
    job = CountingJob()
    scheduler.add_job("sweep", 10, job)

    await scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert job.calls >= 2
    calls_after_stop = job.calls
    await asyncio.sleep(0.05)
    assert job.calls == calls_after_stop
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_start_is_idempotent() -> None:
    scheduler = MaintenanceScheduler()
    scheduler.add_job("sweep", 1_000, CountingJob())

    await scheduler.start()
    await scheduler.start()

    assert scheduler.running is True
    assert len(scheduler._tasks) == 1
    await scheduler.stop()


@pytest.mark.asyncio
async def test_failing_job_is_logged_and_retried(caplog) -> None:
    scheduler = MaintenanceScheduler()
    job = CountingJob(error=RuntimeError("boom"))
    scheduler.add_job("broken", 10, job)

    with caplog.at_level(logging.ERROR, logger="app.services.maintenance"):
        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

    assert job.calls >= 2
    assert any(r.getMessage() == "maintenance.job_failed" for r in caplog.records)


def test_run_once_logs_only_when_something_was_removed(caplog) -> None:
    scheduler = MaintenanceScheduler()
    scheduler.add_job("empty", 1_000, CountingJob(removed=0))
    scheduler.add_job("busy", 1_000, CountingJob(removed=3))
    empty, busy = scheduler.jobs

    with caplog.at_level(logging.INFO, logger="app.services.maintenance"):
        assert scheduler.run_once(empty) == 0
        assert scheduler.run_once(busy) == 3

    swept = [r for r in caplog.records if r.getMessage() == "maintenance.swept"]
    assert len(swept) == 1
    assert swept[0].job == "busy"


def test_invalid_interval_rejected() -> None:
    scheduler = MaintenanceScheduler()

    with pytest.raises(ValueError):
        scheduler.add_job("bad", 0, CountingJob())


def test_build_services_registers_all_sweeps(make_settings) -> None:
    services = build_services(make_settings())

    assert [job.name for job in services.maintenance.jobs] == [
        "cache_sweep",
        "limiter_sweep",
        "coalescer_sweep",
    ]
    assert services.maintenance.running is False
