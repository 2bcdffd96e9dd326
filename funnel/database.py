"""Async engine and session factory for the Item Store.

The production engine is built at import time only when DATABASE_URL is set;
without it `async_session_factory` stays None and ItemStore raises
ConfigurationError on first use. Tests build their own in-memory SQLite
engine with create_test_engine().

Usage:
    from funnel.database import async_session_factory

    async with async_session_factory() as db, db.begin():
        item = await db.get(WorkItem, item_id, with_for_update=True)
"""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from funnel.config import get_database_url
from funnel.utils.logging import get_logger

log = get_logger(__name__)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by every Item Store transaction.

    expire_on_commit=False: items are handed to stage actions after their
    transaction has committed and the session is closed.
    """
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


def _create_engine() -> AsyncEngine | None:
    if not os.getenv("DATABASE_URL"):
        return None
    # Runs are sequential per tag; the pool only needs to cover a few parallel runs
    return create_async_engine(
        get_database_url(),
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
        echo=os.getenv("DATABASE_ECHO", "").lower() == "true",
    )


engine: AsyncEngine | None = _create_engine()
async_session_factory: async_sessionmaker[AsyncSession] | None = (
    build_session_factory(engine) if engine is not None else None
)


async def dispose_engine() -> None:
    """Close pooled connections on shutdown. No-op without a configured engine."""
    if engine is not None:
        await engine.dispose()
        log.info("database_engine_disposed")


def create_test_engine(
    database_url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine and session factory for tests.

    StaticPool keeps a single connection, so every session of an in-memory
    SQLite database sees the same tables.
    """
    test_engine = create_async_engine(database_url, poolclass=StaticPool)
    return test_engine, build_session_factory(test_engine)
