"""Shared pytest fixtures for async database testing.

This module provides reusable fixtures for testing SQLAlchemy models and the
Item Store against an in-memory SQLite database (aiosqlite + StaticPool, so
every session in a test sees the same database).
"""

import pytest
import pytest_asyncio

from funnel.database import create_test_engine
from funnel.models import Base
from funnel.services.item_store import ItemStore


@pytest_asyncio.fixture
async def async_engine_and_factory():
    """Create the test engine and session factory with all tables.

    Yields:
        Tuple of (AsyncEngine, async_sessionmaker).
    """
    engine, factory = create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine, factory

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_engine_and_factory):
    """Session factory bound to the in-memory test database."""
    _, factory = async_engine_and_factory
    return factory


@pytest_asyncio.fixture
async def async_session(session_factory):
    """Create an async session for direct model tests.

    Yields:
        AsyncSession: Database session for test operations.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory) -> ItemStore:
    """Item Store bound to the test database."""
    return ItemStore(session_factory)
