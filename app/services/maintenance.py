"""Periodic background sweeps for the cache, limiter and coalescer.

Each job runs in its own asyncio task on a fixed interval. Jobs are plain
callables returning how many items they removed; a failing job is logged and
retried on the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaintenanceJob:
    name: str
    interval_ms: int
    run: Callable[[], int]


class MaintenanceScheduler:
    """Owns the sweep tasks; started and stopped with the application."""

    def __init__(self) -> None:
        self._jobs: list[MaintenanceJob] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> list[MaintenanceJob]:
        return list(self._jobs)

    def add_job(self, name: str, interval_ms: int, run: Callable[[], int]) -> None:
        if interval_ms < 1:
            raise ValueError("interval_ms must be >= 1")
        self._jobs.append(MaintenanceJob(name=name, interval_ms=interval_ms, run=run))

    async def start(self) -> None:
        """Start one task per job; a second call is a no-op."""
        if self._running:
            return

        self._running = True
        self._tasks = [asyncio.create_task(self._loop(job)) for job in self._jobs]
        logger.info("maintenance.started", extra={"jobs": [job.name for job in self._jobs]})

    async def stop(self) -> None:
        """Cancel all job tasks and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("maintenance.stopped")

    def run_once(self, job: MaintenanceJob) -> int:
        """Run a job immediately and log what it removed."""
        removed = job.run()
        if removed:
            logger.info("maintenance.swept", extra={"job": job.name, "removed": removed})
        return removed

    async def _loop(self, job: MaintenanceJob) -> None:
        while self._running:
            await asyncio.sleep(job.interval_ms / 1000)
            try:
                self.run_once(job)
            except Exception:
                logger.exception("maintenance.job_failed", extra={"job": job.name})
