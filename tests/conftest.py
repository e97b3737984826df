"""
Test Configuration and Fixtures

Provides a per-test SQLite database, a frozen clock, the async test client
and authentication helpers.
"""

import os

# Must be set before backend modules build the application engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from collections.abc import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from backend.config import get_settings
from backend.db.session import build_session_factory, get_db
from backend.dependencies import get_auto_closer, get_clock
from backend.main import app
from backend.models.base import Base
from backend.services.auto_closer import AutoCloser
from backend.services.debounce import InMemoryDebounceStore
from tests.factories import FrozenClock, business_time, make_auth_headers


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh database file per test, so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shifts.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and direct service calls."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    # Monday 2025-03-03, 10:00 local
    return FrozenClock(business_time(2025, 3, 3, 10, 0))


@pytest.fixture
def auto_closer(session_factory, clock: FrozenClock) -> AutoCloser:
    return AutoCloser(
        session_factory=session_factory,
        clock=clock,
        debounce_store=InMemoryDebounceStore(),
        settings=get_settings(),
    )


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory,
    auto_closer: AutoCloser,
    clock: FrozenClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; each request gets its own committed-or-rolled-back session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auto_closer] = lambda: auto_closer
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def processor_id() -> UUID:
    return uuid4()


@pytest.fixture
def processor_headers(processor_id: UUID) -> dict[str, str]:
    return make_auth_headers(processor_id, role="processor")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return make_auth_headers(uuid4(), role="admin")


@pytest.fixture
def scheduler_headers() -> dict[str, str]:
    return make_auth_headers(uuid4(), role="scheduler")
