# tests/conftest.py
import logging
import shutil
import uuid
from typing import Any, Dict, List, Optional, Tuple

import asyncpg
import pytest
import pytest_asyncio

from social_repository.config import DatabaseSettings
from social_repository.db_implementations.pool import create_pool


# --- Availability Checks ---
def is_postgres_available():
    return shutil.which("pg_ctl") is not None


# --- Logger Fixture ---
@pytest.fixture(scope="session")
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_social_repo_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})


# --- In-memory pool ---
class FakeTransaction:
    def __init__(self, conn: "FakeConnection"):
        self._conn = conn

    async def __aenter__(self):
        self._conn.transactions += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self._conn.commits += 1
        else:
            self._conn.rollbacks += 1
        return False


class FakeConnection:
    """
    Records every statement and answers fetch/fetchrow/fetchval from a
    scripted queue. An exception in the queue is raised instead of returned.
    ``execute`` never consumes a response.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.calls: List[Tuple[str, str, Tuple[Any, ...]]] = []
        self.responses: List[Any] = list(responses or [])
        self.transactions = 0
        self.commits = 0
        self.rollbacks = 0

    def _next(self) -> Any:
        if not self.responses:
            return None
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def fetch(self, sql: str, *args: Any) -> List[Dict[str, Any]]:
        self.calls.append(("fetch", sql, args))
        return self._next() or []

    async def fetchrow(self, sql: str, *args: Any) -> Optional[Dict[str, Any]]:
        self.calls.append(("fetchrow", sql, args))
        return self._next()

    async def fetchval(self, sql: str, *args: Any) -> Any:
        self.calls.append(("fetchval", sql, args))
        return self._next()

    async def execute(self, sql: str, *args: Any) -> str:
        self.calls.append(("execute", sql, args))
        return "OK"

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    def statements(self) -> List[str]:
        return [sql for _, sql, _ in self.calls]


class FakePool:
    def __init__(self):
        self.conn = FakeConnection()
        self.acquired = 0
        self.released = 0

    async def acquire(self) -> FakeConnection:
        self.acquired += 1
        return self.conn

    async def release(self, conn: FakeConnection) -> None:
        self.released += 1


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


# --- Row factories ---
@pytest.fixture
def make_user_row():
    def _make(id: str = "alice", **extra: Any) -> Dict[str, Any]:
        row = {"id": id, "nickname": id.title(), "image": f"/{id}.png"}
        row.update(extra)
        return row

    return _make


@pytest.fixture
def make_post_row(make_user_row):
    def _make(postid: int = 1, userid: str = "alice", **extra: Any) -> Dict[str, Any]:
        row = {
            "postid": postid,
            "userid": userid,
            "User": make_user_row(userid),
            "content": "hello",
            "images": [],
            "_count": {"Hearts": 0, "Reposts": 0, "Comments": 0, "Bookmarks": 0, "Views": 0},
        }
        row.update(extra)
        return row

    return _make


@pytest.fixture
def make_message_row(make_user_row):
    def _make(id: int = 1, roomid: str = "alice-bob", senderid: str = "alice", **extra: Any):
        row = {
            "id": id,
            "roomid": roomid,
            "senderid": senderid,
            "Sender": make_user_row(senderid),
            "content": "hi",
        }
        row.update(extra)
        return row

    return _make


# --- PostgreSQL (pytest-postgresql) ---
@pytest_asyncio.fixture
async def postgres_pool(request):
    """
    A pool on a fresh temporary database, search path set to 'xclone'.
    Skipped when the PostgreSQL binaries are not installed.
    """
    if not is_postgres_available():
        pytest.skip("PostgreSQL (pg_ctl) is not available.")
    postgresql_proc = request.getfixturevalue("postgresql_proc")

    temp_db_name = f"test_db_{uuid.uuid4().hex}"
    admin_conn = await asyncpg.connect(
        host=postgresql_proc.host,
        port=postgresql_proc.port,
        user=postgresql_proc.user,
        password=postgresql_proc.password,
        database="postgres",
    )
    try:
        await admin_conn.execute(f'CREATE DATABASE "{temp_db_name}"')
        settings = DatabaseSettings(
            host=postgresql_proc.host,
            port=postgresql_proc.port,
            user=postgresql_proc.user,
            password=postgresql_proc.password,
            database=temp_db_name,
            schema="xclone",
            pool_min_size=1,
            pool_max_size=4,
        )
        pool = await create_pool(settings)

        yield pool, settings

        await pool.close()
        await admin_conn.execute(f'DROP DATABASE "{temp_db_name}"')
    finally:
        await admin_conn.close()
