"""Contracts for the stores the task service is built on.

The service only talks to these protocols; production wiring passes the
SQL repository and the two-tier cache layer, tests pass in-memory fakes.
"""

from typing import Any, Protocol, Sequence

from tasktracker.models import Task


class RecordStore(Protocol):
    """Durable task collection, scoped by owner."""

    async def find(
        self,
        owner_id: str,
        status: str | None = None,
        priority: str | None = None,
        newest_first: bool = False,
        skip: int = 0,
        limit: int | None = None,
    ) -> Sequence[Task]:
        """Return the owner's tasks matching the filters.

        With ``newest_first`` False the store's natural (insertion) order is
        used.
        """
        ...

    async def create(self, task: Task) -> Task:
        """Persist a new task and return it with store-assigned fields."""
        ...

    async def update_by_id_and_owner(
        self, task_id: int, owner_id: str, fields: dict[str, Any]
    ) -> Task | None:
        """Apply ``fields`` to the task only if it belongs to ``owner_id``."""
        ...

    async def delete_by_id_and_owner(self, task_id: int, owner_id: str) -> Task | None:
        """Delete the task only if it belongs to ``owner_id``."""
        ...


class CacheStore(Protocol):
    """Key/value store with expiring entries."""

    async def get(self, key: str) -> Any:
        """Return cached value or None."""
        ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store value with TTL in seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key from cache."""
        ...
