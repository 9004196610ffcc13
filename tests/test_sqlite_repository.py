import sqlite3

import pytest

from todo_service.db import SQLiteRepository
from todo_service.errors import StoreError
from todo_service.repositories import InMemoryRepository, ListQuery, get_repository
from todo_service.schemas import TodoIn
from todo_service.settings import Settings


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "data" / "todo.db")


@pytest.fixture
def repo(db_path):
    return SQLiteRepository(db_path)


def todo(title="t", description=""):
    return TodoIn(title=title, description=description)


class TestSQLiteRepository:
    def test_create_and_get(self, repo):
        created = repo.create(todo("Buy milk", "2 liters"))
        assert created.id == 1
        assert created.audit.created_at == created.audit.updated_at
        assert created.audit.deleted_at is None
        assert repo.get(created.id) == created

    def test_get_missing(self, repo):
        assert repo.get(123) is None

    def test_update_keeps_identity_and_creation_time(self, repo):
        created = repo.create(todo("a", "b"))
        updated = repo.update(created.id, todo("c", "d"))
        assert updated.id == created.id
        assert (updated.title, updated.description) == ("c", "d")
        assert updated.audit.created_at == created.audit.created_at
        assert updated.audit.updated_at >= created.audit.updated_at
        assert repo.update(999, todo()) is None

    def test_soft_delete(self, repo, db_path):
        created = repo.create(todo())
        assert repo.delete(created.id) is True
        assert repo.get(created.id) is None
        assert repo.update(created.id, todo("x")) is None
        assert repo.delete(created.id) is False
        assert repo.list() == []

        with sqlite3.connect(db_path) as conn:
            row = conn.execute("SELECT deleted_at FROM todos WHERE id = ?", (created.id,)).fetchone()
        assert row[0] is not None

    def test_list_window(self, repo):
        ids = [repo.create(todo(f"T{i}")).id for i in range(5)]
        assert [t.id for t in repo.list()] == ids
        assert [t.id for t in repo.list(ListQuery(limit=2, offset=1))] == ids[1:3]
        assert repo.list(ListQuery(limit=0)) == []

    def test_list_window_beyond_integer_range(self, repo):
        ids = [repo.create(todo(f"T{i}")).id for i in range(2)]
        assert [t.id for t in repo.list(ListQuery(limit=10**20))] == ids
        assert repo.list(ListQuery(offset=10**20)) == []

    def test_persists_across_instances(self, repo, db_path):
        created = repo.create(todo("kept"))
        assert SQLiteRepository(db_path).get(created.id) == created

    def test_create_many(self, repo):
        created = repo.create_many([todo("one"), todo("two")])
        assert [t.id for t in created] == [1, 2]
        assert repo.list() == created

    def test_create_many_rolls_back(self, db_path):
        class FailingSQLiteRepository(SQLiteRepository):
            def _insert(self, conn, data, now):
                if data.title == "boom":
                    raise sqlite3.IntegrityError("CHECK constraint failed: title")
                return super()._insert(conn, data, now)

        repo = FailingSQLiteRepository(db_path)
        repo.create(todo("existing"))

        with pytest.raises(StoreError, match="CHECK constraint failed"):
            repo.create_many([todo("one"), todo("boom"), todo("three")])
        assert [t.title for t in repo.list()] == ["existing"]

    def test_adds_missing_columns_to_existing_table(self, db_path, tmp_path):
        (tmp_path / "data").mkdir(exist_ok=True)
        with sqlite3.connect(db_path) as conn:
            conn.execute(
                "CREATE TABLE todos (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT NOT NULL, "
                "created_at TEXT NOT NULL, updated_at TEXT NOT NULL)"
            )
            conn.execute(
                "INSERT INTO todos (title, created_at, updated_at) VALUES ('legacy', "
                "'2024-01-01T00:00:00+00:00', '2024-01-01T00:00:00+00:00')"
            )

        repo = SQLiteRepository(db_path)
        legacy = repo.get(1)
        assert legacy.title == "legacy"
        assert legacy.description == ""
        assert legacy.audit.deleted_at is None
        assert repo.delete(1) is True


class TestRepositoryFactory:
    def test_memory(self):
        assert isinstance(get_repository(Settings(persistence_backend="memory")), InMemoryRepository)

    def test_sqlite(self, db_path):
        repo = get_repository(Settings(persistence_backend="sqlite", sqlite_db_path=db_path))
        assert isinstance(repo, SQLiteRepository)
