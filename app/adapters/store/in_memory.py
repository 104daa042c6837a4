"""In-memory user store with simulated lookup latency."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Iterable

from app.adapters.store.base import AbstractUserStore
from app.core.errors import UserNotFoundError
from app.schemas.user import UserRecord

logger = logging.getLogger(__name__)


SEED_USERS: tuple[UserRecord, ...] = (
    UserRecord(id=1, name="John Doe", email="john@example.com"),
    UserRecord(id=2, name="Jane Smith", email="jane@example.com"),
    UserRecord(id=3, name="Alice Johnson", email="alice@example.com"),
)


class InMemoryUserStore(AbstractUserStore):
    """Dictionary-backed store that sleeps ``latency_ms`` on every lookup.

    The delay stands in for a database round trip and happens outside the
    lock, so concurrent lookups overlap.
    """

    def __init__(
        self,
        *,
        latency_ms: int = 200,
        records: Iterable[UserRecord] = SEED_USERS,
    ) -> None:
        if latency_ms < 0:
            raise ValueError("latency_ms must be >= 0")

        self._latency_s = latency_ms / 1000
        self._lock = threading.Lock()
        self._records: dict[int, UserRecord] = {r.id: r for r in records}
        self._lookup_count = 0

    @property
    def lookup_count(self) -> int:
        """Number of lookups served since construction."""
        with self._lock:
            return self._lookup_count

    async def lookup(self, user_id: int) -> UserRecord:
        with self._lock:
            self._lookup_count += 1

        if self._latency_s:
            await asyncio.sleep(self._latency_s)

        with self._lock:
            record = self._records.get(user_id)

        if record is None:
            raise UserNotFoundError(
                code="not_found",
                message=f"User with ID {user_id} not found",
                details={"user_id": user_id},
            )
        return record

    async def insert(self, record: UserRecord) -> UserRecord:
        with self._lock:
            self._records[record.id] = record
        logger.info("store.user_inserted", extra={"user_id": record.id})
        return record

    async def create(self, name: str, email: str) -> UserRecord:
        with self._lock:
            new_id = max(self._records, default=0) + 1
            record = UserRecord(id=new_id, name=name, email=email)
            self._records[new_id] = record
        logger.info("store.user_created", extra={"user_id": new_id})
        return record

    async def list(self) -> list[UserRecord]:
        with self._lock:
            return [self._records[user_id] for user_id in sorted(self._records)]
