from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Audit:
    """
    Store-managed bookkeeping attached to every record.

    Fields:
    - created_at: creation timestamp (UTC)
    - updated_at: last update timestamp (UTC)
    - deleted_at: soft-deletion marker; None while the record is live
    """

    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def touched(self, now: datetime) -> "Audit":
        return replace(self, updated_at=now)

    def deleted(self, now: datetime) -> "Audit":
        return replace(self, deleted_at=now)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TodoRecord:
    """
    A persisted Todo item.

    Fields:
    - id: Unique integer identifier assigned by the store, never changed afterwards
    - title: Short title
    - description: Free-form description
    - audit: Timestamps and soft-deletion marker
    """

    id: int
    title: str
    description: str
    audit: Audit
