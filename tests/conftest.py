"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Must be set before any app imports that trigger Settings validation.
# Tests run in dev mode (bypasses auth) regardless of local .env
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["DEV_MODE"] = "true"

from models.base import Base  # noqa: E402


@pytest.fixture
def database_url() -> str:
    """Database URL used by the test engine (in-memory SQLite)."""
    return TEST_DATABASE_URL


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """
    Create an async engine for testing.

    StaticPool keeps the single in-memory database alive for the whole test.
    The event hooks hand transaction control to SQLAlchemy so SAVEPOINTs work
    with the sqlite driver.
    """
    engine = create_async_engine(
        database_url,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001, ARG001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn) -> None:  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
def session_factory(db_connection: AsyncConnection) -> async_sessionmaker:
    """
    Session factory bound to the test transaction.

    Uses savepoints, allowing the session's flush/commit to work within our
    outer test transaction. Background metadata refreshes get their sessions here.
    """
    return async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest.fixture
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession]:
    """Create an async session bound to the test transaction."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    db_session: AsyncSession,
    session_factory: async_sessionmaker,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session overrides."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session, get_session_factory
    from services.bookmark_service import cancel_background_tasks

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    def override_get_session_factory() -> async_sessionmaker:
        return session_factory

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = override_get_session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    cancel_background_tasks()
