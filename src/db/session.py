"""Database engine and sessions for request handlers and background metadata refreshes."""
import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine; pre-ping drops connections the server has closed."""
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


engine = build_engine(get_settings().database_url)

# Objects stay readable after commit: create_bookmark commits early and still returns the row
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker:
    """Session factory for metadata refreshes that outlive the request session."""
    return async_session_factory


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield the request-scoped session.

    Services only flush; the request's writes are committed here once the
    route returns, and any exception rolls them back. A bookmark committed
    early for a background refresh is already durable and is not undone.
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        logger.warning("Rolling back request session after an error")
        await session.rollback()
        raise
    finally:
        await session.close()
