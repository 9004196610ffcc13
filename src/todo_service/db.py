from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Generator, List, Optional, Sequence

from .errors import StoreError
from .models import Audit, TodoRecord
from .repositories import MAX_ROW_ID, ListQuery, Repository
from .schemas import TodoIn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    deleted_at: str = "deleted_at"


_COLS = _Cols()
_EPOCH = "1970-01-01T00:00:00+00:00"

# Column definitions usable both in CREATE TABLE and ALTER TABLE ADD COLUMN,
# hence constant defaults on every NOT NULL column.
_COLUMN_DEFS: Dict[str, str] = {
    _COLS.title: "TEXT NOT NULL DEFAULT ''",
    _COLS.description: "TEXT NOT NULL DEFAULT ''",
    _COLS.created_at: f"TEXT NOT NULL DEFAULT '{_EPOCH}'",
    _COLS.updated_at: f"TEXT NOT NULL DEFAULT '{_EPOCH}'",
    _COLS.deleted_at: "TEXT NULL",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    One connection is opened per operation. Deletes are soft: the row keeps
    its data and gets a deleted_at timestamp.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        columns = ",\n".join(f"{name} {ddl}" for name, ddl in _COLUMN_DEFS.items())
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {columns}
                )
                """
            )
            existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({_COLS.table})")}
            for name, ddl in _COLUMN_DEFS.items():
                if name not in existing:
                    logger.info("Adding missing column %s.%s", _COLS.table, name)
                    conn.execute(f"ALTER TABLE {_COLS.table} ADD COLUMN {name} {ddl}")
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_deleted_at ON {_COLS.table}({_COLS.deleted_at})"
            )

    def _row_to_record(self, row: sqlite3.Row) -> TodoRecord:
        def parse_dt(s: Optional[str]) -> Optional[datetime]:
            if s is None:
                return None
            return datetime.fromisoformat(s)

        return TodoRecord(
            id=int(row[_COLS.id]),
            title=str(row[_COLS.title]),
            description=str(row[_COLS.description]),
            audit=Audit(
                created_at=parse_dt(row[_COLS.created_at]),  # type: ignore[arg-type]
                updated_at=parse_dt(row[_COLS.updated_at]),  # type: ignore[arg-type]
                deleted_at=parse_dt(row[_COLS.deleted_at]),
            ),
        )

    def _fetch_live(self, conn: sqlite3.Connection, todo_id: int) -> Optional[TodoRecord]:
        row = conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ? AND {_COLS.deleted_at} IS NULL",
            (todo_id,),
        ).fetchone()
        return self._row_to_record(row) if row else None

    def _insert(self, conn: sqlite3.Connection, data: TodoIn, now: str) -> TodoRecord:
        cur = conn.execute(
            f"""
            INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.description},
                {_COLS.created_at}, {_COLS.updated_at})
            VALUES (?, ?, ?, ?)
            """,
            (data.title, data.description, now, now),
        )
        record = self._fetch_live(conn, int(cur.lastrowid))
        assert record is not None
        return record

    def create(self, data: TodoIn) -> TodoRecord:
        with self._conn() as conn:
            return self._insert(conn, data, _now())

    def get(self, todo_id: int) -> Optional[TodoRecord]:
        with self._conn() as conn:
            return self._fetch_live(conn, todo_id)

    def update(self, todo_id: int, data: TodoIn) -> Optional[TodoRecord]:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.title} = ?, {_COLS.description} = ?, {_COLS.updated_at} = ?
                WHERE {_COLS.id} = ? AND {_COLS.deleted_at} IS NULL
                """,
                (data.title, data.description, _now(), todo_id),
            )
            if cur.rowcount == 0:
                return None
            return self._fetch_live(conn, todo_id)

    def delete(self, todo_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table} SET {_COLS.deleted_at} = ?
                WHERE {_COLS.id} = ? AND {_COLS.deleted_at} IS NULL
                """,
                (_now(), todo_id),
            )
            return cur.rowcount > 0

    def list(self, query: Optional[ListQuery] = None) -> List[TodoRecord]:
        q = query or ListQuery()
        # SQLite treats a negative LIMIT as "no limit".
        limit = -1 if q.limit is None else min(max(q.limit, 0), MAX_ROW_ID)
        offset = min(max(q.offset, 0), MAX_ROW_ID)
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                WHERE {_COLS.deleted_at} IS NULL
                ORDER BY {_COLS.id} ASC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
            return [self._row_to_record(r) for r in rows]

    def create_many(self, items: Sequence[TodoIn]) -> List[TodoRecord]:
        now = _now()
        try:
            with self._conn() as conn:
                return [self._insert(conn, item, now) for item in items]
        except Exception as exc:
            logger.warning("Rolled back batch of %d todos: %s", len(items), exc)
            if isinstance(exc, StoreError):
                raise
            raise StoreError(str(exc)) from exc
