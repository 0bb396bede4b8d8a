"""
Shared pytest fixtures.

- A throwaway aiosqlite database file per test (tables created up front)
- An in-memory RowStore for service unit tests, able to simulate failures
- A FastAPI app wired to the test database, driven through httpx
"""

import asyncio
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Iterable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from urlshortener.core.exceptions import DatabaseError
from urlshortener.db.models import ShortenedUrl
from urlshortener.db.repository import RowStore, SQLModelRowStore
from urlshortener.db.session import get_session, init_models, make_session_maker
from urlshortener.db.sqlite_adapter import SQLiteAdapter
from urlshortener.main import create_app
from urlshortener.services import alias_codec
from urlshortener.services.telemetry import TelemetryQueue


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands datetimes back without tzinfo; they were stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


async def wait_for(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll `predicate` until it holds or `timeout` seconds have passed."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


class FakeRowStore(RowStore):
    """
    In-memory RowStore.

    Args:
        fail_on: Names of operations that raise DatabaseError
            ("find_by_alias", "insert", "update", "get_by_id", "query")
    """

    def __init__(self, fail_on: Iterable[str] = ()):
        self.rows: dict[int, ShortenedUrl] = {}
        self.fail_on = set(fail_on)
        self.calls: list[str] = []
        self._next_id = 1

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise DatabaseError(
                f"simulated {operation} failure",
                original_error=RuntimeError(f"{operation} exploded")
            )

    def seed(self, alias: str, offset: int, full_url: str) -> ShortenedUrl:
        """Add a row directly, bypassing the service."""
        row = ShortenedUrl(
            row_id=self._next_id,
            alias=alias,
            offset=offset,
            url_safe_alias=alias_codec.encode(alias, offset),
            full_url=full_url,
            created=datetime.now(timezone.utc),
            hits=0,
        )
        self.rows[row.row_id] = row
        self._next_id += 1
        return row

    async def find_by_alias(self, alias: str) -> list[ShortenedUrl]:
        self._maybe_fail("find_by_alias")
        return sorted(
            (row for row in self.rows.values() if row.alias == alias),
            key=lambda row: row.offset
        )

    async def insert(self, row: ShortenedUrl) -> ShortenedUrl:
        self._maybe_fail("insert")
        row.row_id = self._next_id
        self._next_id += 1
        self.rows[row.row_id] = row
        return row

    async def update(self, row: ShortenedUrl) -> None:
        self._maybe_fail("update")
        self.rows[row.row_id] = row

    async def get_by_id(self, row_id: int) -> Optional[ShortenedUrl]:
        self._maybe_fail("get_by_id")
        return self.rows.get(row_id)

    async def query(
        self,
        page_index: int = 0,
        page_size: int = 20,
        search: Optional[str] = None
    ) -> tuple[list[ShortenedUrl], int]:
        self._maybe_fail("query")
        rows = [row for row in self.rows.values() if not search or search in row.full_url]
        rows.sort(key=lambda row: (row.created, row.row_id), reverse=True)
        start = page_index * page_size
        return rows[start:start + page_size], len(rows)


@pytest.fixture
def fake_store() -> FakeRowStore:
    return FakeRowStore()


@pytest.fixture
def queue() -> TelemetryQueue:
    return TelemetryQueue(capacity=10)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    test_engine = SQLiteAdapter().create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return make_session_maker(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def row_store(db_session: AsyncSession) -> SQLModelRowStore:
    return SQLModelRowStore(db_session)


@pytest_asyncio.fixture(scope="function")
async def app(engine: AsyncEngine, session_maker: async_sessionmaker):
    """
    Application bound to the test database with its telemetry pipeline running.

    httpx's ASGITransport does not emit lifespan events, so the pipeline is
    started and stopped here instead of by the startup/shutdown hooks.
    """
    application = create_app(session_maker=session_maker, bind=engine)

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_session] = override_get_session

    telemetry = application.state.telemetry
    telemetry.aggregator.idle_delay = 0.01
    await telemetry.start()

    yield application

    await telemetry.shutdown()
    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
