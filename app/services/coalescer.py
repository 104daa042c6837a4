"""Single-flight request coalescer.

Concurrent requests for the same key share one underlying fetch instead of
each hitting the store. The first caller installs a pending group and starts
the fetch as an ``asyncio.Task``; later callers attach a future to the group
and await it. When the fetch finishes, the group is removed from the map and
its waiter list captured in the same critical section, then every waiter
receives the same outcome. Callers arriving after that point start a new
fetch.

The fetch runs in its own task so a caller that goes away (e.g. a client
disconnect cancelling the request) never cancels the fetch itself.

Groups older than ``stale_ms`` are reclaimed by ``sweep``: their waiters get
a ``CoalescerTimeoutError`` and the fetch, which is not cancelled, finishes
with nobody left to deliver to.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Hashable, TypeVar

from app.core.clock import monotonic_ms
from app.core.errors import CoalescerTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PendingGroup(Generic[T]):
    """Bookkeeping for one in-flight fetch and the callers waiting on it."""

    created_at: int
    waiters: list[asyncio.Future[T]] = field(default_factory=list)
    task: asyncio.Task[None] | None = None


class RequestCoalescer(Generic[T]):
    """At most one in-flight fetch per key; all waiters share its outcome."""

    def __init__(
        self,
        *,
        stale_ms: int = 30_000,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        """Initialize the coalescer.

        Args:
            stale_ms: Age after which a pending group is reclaimed by ``sweep``.
            clock: Monotonic time source returning milliseconds.

        Raises:
            ValueError: If stale_ms is invalid.
        """
        if stale_ms < 1:
            raise ValueError("stale_ms must be >= 1")

        self._stale_ms = stale_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._groups: dict[Hashable, PendingGroup[T]] = {}
        # Fetch tasks outlive reclaimed groups, so they are tracked separately
        self._tasks: set[asyncio.Task[None]] = set()
        self._fetches = 0
        self._coalesced = 0
        self._timeouts = 0

    async def do(self, key: Hashable, fetch_fn: Callable[[], Awaitable[T]]) -> T:
        """Return the outcome of ``fetch_fn`` for ``key``, sharing in-flight work.

        Args:
            key: Identity of the fetched resource.
            fetch_fn: Zero-argument coroutine function performing the fetch.
                Invoked at most once per pending group.

        Returns:
            The value produced by the group's fetch.

        Raises:
            CoalescerTimeoutError: If the group was reclaimed as stale.
            Exception: Whatever ``fetch_fn`` raised, for every waiter.
        """
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[T] = loop.create_future()

        with self._lock:
            group = self._groups.get(key)
            leader = group is None
            if group is None:
                group = PendingGroup(created_at=self._clock())
                self._groups[key] = group
                self._fetches += 1
            else:
                self._coalesced += 1
            group.waiters.append(waiter)

        if leader:
            task = loop.create_task(self._run(key, group, fetch_fn))
            group.task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            logger.debug("coalescer.attached", extra={"coalesce_key": str(key)})

        return await waiter

    async def _run(
        self,
        key: Hashable,
        group: PendingGroup[T],
        fetch_fn: Callable[[], Awaitable[T]],
    ) -> None:
        try:
            value = await fetch_fn()
        except asyncio.CancelledError:
            for waiter in self._detach(key, group):
                waiter.cancel()
            raise
        except Exception as exc:
            for waiter in self._detach(key, group):
                if not waiter.done():
                    waiter.set_exception(exc)
        else:
            for waiter in self._detach(key, group):
                if not waiter.done():
                    waiter.set_result(value)

    def _detach(self, key: Hashable, group: PendingGroup[T]) -> list[asyncio.Future[T]]:
        """Destroy the group and capture its waiters in one critical section."""
        with self._lock:
            if self._groups.get(key) is group:
                del self._groups[key]
            waiters = group.waiters
            group.waiters = []
        return waiters

    def sweep(self, now: int | None = None) -> int:
        """Reclaim pending groups older than ``stale_ms``.

        Remaining waiters receive ``CoalescerTimeoutError``; running fetches
        are left alone.

        Returns:
            Number of groups reclaimed.
        """
        if now is None:
            now = self._clock()

        with self._lock:
            stale = [
                (key, group)
                for key, group in self._groups.items()
                if now - group.created_at > self._stale_ms
            ]
            reclaimed: list[tuple[Hashable, int, list[asyncio.Future[T]]]] = []
            for key, group in stale:
                del self._groups[key]
                reclaimed.append((key, now - group.created_at, group.waiters))
                group.waiters = []
            self._timeouts += len(stale)

        for key, age_ms, waiters in reclaimed:
            logger.warning(
                "coalescer.timeout",
                extra={
                    "coalesce_key": str(key),
                    "age_ms": age_ms,
                    "waiters": len(waiters),
                },
            )
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(
                        CoalescerTimeoutError(
                            code="timeout",
                            message=f"Timed out waiting for pending fetch of {key}",
                            details={"key": str(key), "age_ms": age_ms},
                        )
                    )
        return len(reclaimed)

    def pending_count(self, key: Hashable) -> int:
        """Number of callers currently waiting on ``key``."""
        with self._lock:
            group = self._groups.get(key)
            return len(group.waiters) if group is not None else 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "pending_groups": len(self._groups),
                "waiters": sum(len(g.waiters) for g in self._groups.values()),
                "fetches": self._fetches,
                "coalesced": self._coalesced,
                "timeouts": self._timeouts,
            }

    async def shutdown(self) -> None:
        """Cancel in-flight fetches; their waiters are cancelled too."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
