"""User store interface.

The store is the source of truth for user records. Services depend on this
abstraction so tests can substitute a fake and a persistent backend can be
added without touching the request pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from app.schemas.user import UserRecord


class AbstractUserStore(ABC):
    """Interface for user record stores."""

    @abstractmethod
    async def lookup(self, user_id: int) -> UserRecord:
        """Fetch one record by id.

        Raises:
            UserNotFoundError: If no record exists for ``user_id``.
            StoreAppError: On any other store failure.
        """
        raise NotImplementedError

    @abstractmethod
    async def insert(self, record: UserRecord) -> UserRecord:
        """Store a record, replacing any record with the same id."""
        raise NotImplementedError

    @abstractmethod
    async def create(self, name: str, email: str) -> UserRecord:
        """Create a record with the next free id and store it."""
        raise NotImplementedError

    @abstractmethod
    async def list(self) -> list[UserRecord]:
        """Return all records ordered by id."""
        raise NotImplementedError
