from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import RLock
from typing import Dict, List, Optional, Sequence

from .errors import StoreError
from .models import Audit, TodoRecord
from .schemas import TodoIn
from .settings import Settings

logger = logging.getLogger(__name__)

# Largest id or window bound a store must accept (SQLite INTEGER range).
MAX_ROW_ID = 2**63 - 1


@dataclass(frozen=True)
class ListQuery:
    """
    Window over the live (not soft-deleted) records.

    `limit=None` returns everything from `offset` on.
    """
    limit: Optional[int] = None
    offset: int = 0


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo storage backends.

    Every read excludes soft-deleted records. Listing order is whatever the
    backend iterates in; callers must not rely on it.
    """

    @abstractmethod
    def create(self, data: TodoIn) -> TodoRecord:
        """Persist a new record and return it with its id and timestamps."""

    @abstractmethod
    def get(self, todo_id: int) -> Optional[TodoRecord]:
        """Return a live record by id, or None if absent or soft-deleted."""

    @abstractmethod
    def update(self, todo_id: int, data: TodoIn) -> Optional[TodoRecord]:
        """Replace title and description of a live record. Return it, or None if not found."""

    @abstractmethod
    def delete(self, todo_id: int) -> bool:
        """Soft-delete a live record. Return False if not found."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> List[TodoRecord]:
        """Return live records, windowed by `query`."""

    @abstractmethod
    def create_many(self, items: Sequence[TodoIn]) -> List[TodoRecord]:
        """
        Insert every item in a single transaction.

        Either all items are persisted or, if any insert fails, none are and
        StoreError is raised.
        """


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing.

    Records are kept in insertion order, which is also id order.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[int, TodoRecord] = {}
        self._next_id = 1

    def _insert(self, data: TodoIn, now: datetime) -> TodoRecord:
        record = TodoRecord(
            id=self._next_id,
            title=data.title,
            description=data.description,
            audit=Audit(created_at=now, updated_at=now),
        )
        self._next_id += 1
        self._items[record.id] = record
        return record

    def _live(self, todo_id: int) -> Optional[TodoRecord]:
        item = self._items.get(todo_id)
        if item is None or item.audit.is_deleted:
            return None
        return item

    def create(self, data: TodoIn) -> TodoRecord:
        with self._lock:
            return self._insert(data, _now())

    def get(self, todo_id: int) -> Optional[TodoRecord]:
        with self._lock:
            return self._live(todo_id)

    def update(self, todo_id: int, data: TodoIn) -> Optional[TodoRecord]:
        with self._lock:
            existing = self._live(todo_id)
            if existing is None:
                return None
            updated = replace(
                existing,
                title=data.title,
                description=data.description,
                audit=existing.audit.touched(_now()),
            )
            self._items[todo_id] = updated
            return updated

    def delete(self, todo_id: int) -> bool:
        with self._lock:
            existing = self._live(todo_id)
            if existing is None:
                return False
            self._items[todo_id] = replace(existing, audit=existing.audit.deleted(_now()))
            return True

    def list(self, query: Optional[ListQuery] = None) -> List[TodoRecord]:
        q = query or ListQuery()
        with self._lock:
            live = [t for t in self._items.values() if not t.audit.is_deleted]
        start = max(q.offset, 0)
        end = None if q.limit is None else start + max(q.limit, 0)
        return live[start:end]

    def create_many(self, items: Sequence[TodoIn]) -> List[TodoRecord]:
        # The lock is held for the whole batch, so readers never see a partial insert.
        with self._lock:
            snapshot = dict(self._items)
            next_id = self._next_id
            now = _now()
            try:
                return [self._insert(item, now) for item in items]
            except Exception as exc:
                self._items = snapshot
                self._next_id = next_id
                logger.warning("Rolled back batch of %d todos: %s", len(items), exc)
                if isinstance(exc, StoreError):
                    raise
                raise StoreError(str(exc)) from exc


# PUBLIC_INTERFACE
def get_repository(settings: Settings) -> Repository:
    """
    Build the repository configured in `settings`.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository backed by settings.sqlite_db_path
    """
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()


__all__ = [
    "InMemoryRepository",
    "ListQuery",
    "Repository",
    "StoreError",
    "get_repository",
]
