"""Pytest configuration and fixtures."""

import os
import secrets
import sqlite3
from contextlib import closing

import pytest

# Unique secret per run so test cookies cannot be replayed elsewhere
_TEST_SESSION_SECRET = f"test-only-{secrets.token_urlsafe(32)}"
os.environ.setdefault("MEMOSHARE_SESSION_SECRET", _TEST_SESSION_SECRET)

from fastapi.testclient import TestClient  # noqa: E402

from memoshare.config import Settings  # noqa: E402
from memoshare.main import create_app  # noqa: E402
from memoshare.rate_limit import limiter  # noqa: E402
from memoshare.sessions import MemorySessionStore  # noqa: E402
from memoshare.storage import (  # noqa: E402
    ConnectionPool,
    MemoRepository,
    init_db,
    open_sqlite_connection,
)


class FakeClock:
    """Settable clock returning storage-format timestamps."""

    def __init__(self, value: str = "2024-01-01 00:00:00"):
        self.value = value

    def __call__(self) -> str:
        return self.value


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate-limit counters are process-wide; start every test clean."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def db_path(tmp_path):
    """Path of an initialized, empty database."""
    path = tmp_path / "memoshare.db"
    with closing(open_sqlite_connection(path)) as conn:
        init_db(conn)
    return path


@pytest.fixture
def conn(db_path):
    """A connection outside the pool, for arranging test data."""
    connection = open_sqlite_connection(db_path)
    yield connection
    connection.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo(conn, clock):
    return MemoRepository(conn, now_fn=clock)


@pytest.fixture
def users(repo):
    """Two registered users: alice/alice-pw and bob/bob-pw. Maps name to id."""
    return {
        "alice": repo.create_user("alice", "alice-pw"),
        "bob": repo.create_user("bob", "bob-pw"),
    }


@pytest.fixture
def settings(tmp_path, db_path):
    return Settings(
        session_secret=_TEST_SESSION_SECRET,
        database_path=db_path,
        db_pool_size=3,
        static_dir=tmp_path / "public",
        signin_rate_limit="1000/minute",
    )


@pytest.fixture
def pool(db_path):
    connection_pool = ConnectionPool.for_sqlite(db_path, 3)
    yield connection_pool
    connection_pool.close()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def app(settings, pool, session_store):
    return create_app(settings, pool=pool, session_store=session_store)


@pytest.fixture
def client(app):
    """Test client that does not follow redirects."""
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def signin(client):
    """Post credentials to ``/signin`` with the shared client."""

    def _signin(username: str, password: str):
        return client.post("/signin", data={"username": username, "password": password})

    return _signin


@pytest.fixture
def alice_client(client, users, signin):
    """Client signed in as alice."""
    response = signin("alice", "alice-pw")
    assert response.status_code == 302
    return client


@pytest.fixture
def csrf_token(alice_client):
    """alice's CSRF token, as shown on her personal page."""
    return alice_client.get("/mypage").json()["token"]


@pytest.fixture
def memo_count(db_path):
    def _count() -> int:
        with closing(sqlite3.connect(db_path)) as c:
            return c.execute("SELECT count(*) FROM memos").fetchone()[0]

    return _count
