from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from todo_service.cache import ListingCache
from todo_service.db import SQLiteRepository
from todo_service.errors import StoreError
from todo_service.main import create_app
from todo_service.repositories import InMemoryRepository
from todo_service.settings import Settings
from todo_service.tokens import TokenService

SECRET = "test-secret-with-more-than-thirty-two-bytes"
CACHE_TTL = 30.0


class ManualClock:
    """Wall clock for TokenService that only moves when told to."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class ManualTimer:
    """Monotonic timer for the listing cache."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class CountingMixin:
    """Counts full listing reads on whichever store it is mixed into."""

    list_calls = 0

    def list(self, query=None):
        self.list_calls += 1
        return super().list(query)


def reject_boom(data):
    # Stands in for a constraint violation.
    if data.title == "boom":
        raise StoreError("CHECK constraint failed: title")


class FailingRepository(CountingMixin, InMemoryRepository):
    """In-memory store that rejects any todo titled 'boom'."""

    def _insert(self, data, now):
        reject_boom(data)
        return super()._insert(data, now)

    def deleted_at(self, todo_id):
        return self._items[todo_id].audit.deleted_at


class FailingSQLiteRepository(CountingMixin, SQLiteRepository):
    """SQLite store that rejects any todo titled 'boom'."""

    def _insert(self, conn, data, now):
        reject_boom(data)
        return super()._insert(conn, data, now)

    def deleted_at(self, todo_id):
        with self._conn() as conn:
            row = conn.execute("SELECT deleted_at FROM todos WHERE id = ?", (todo_id,)).fetchone()
        return row["deleted_at"]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    return request.param


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "todo.db")


@pytest.fixture
def repository(backend, db_path):
    if backend == "sqlite":
        return FailingSQLiteRepository(db_path)
    return FailingRepository()


@pytest.fixture
def secret():
    return SECRET


@pytest.fixture
def token_service(secret, clock):
    return TokenService(secret, clock=clock)


@pytest.fixture
def settings(backend, db_path):
    return Settings(
        persistence_backend=backend,
        sqlite_db_path=db_path,
        secret_key=SECRET,
        cache_ttl_seconds=CACHE_TTL,
    )


def build_client(settings, repository, token_service, timer):
    cache = ListingCache(settings.cache_ttl_seconds, timer=timer)
    app = create_app(settings, repository=repository, token_service=token_service, cache=cache)
    return TestClient(app)


@pytest.fixture
def client(settings, repository, token_service, timer):
    return build_client(settings, repository, token_service, timer)


@pytest.fixture
def make_client(repository, token_service, timer):
    """Build a client for custom settings, sharing the test's store, signer and timer."""

    def _make(custom_settings):
        return build_client(custom_settings, repository, token_service, timer)

    return _make


@pytest.fixture
def token(client):
    res = client.post("/login?userid=7")
    assert res.status_code == 200
    return res.json()["token"]


@pytest.fixture
def auth(token):
    return {"Authorization": token}
