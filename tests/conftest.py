"""Test configuration and fixtures for shelfmanager."""

from dotenv import load_dotenv
import pytest
import os
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession

from shelfmanager import Manager, ManagerConfig, set_active_registry
from shelfmanager.database import create_async_db_engine, create_session_factory, create_all, drop_all
from tests.models import Base
from tests.schema import registry

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def active_registry():
    set_active_registry(registry)
    yield registry


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine for each test function."""
    # Check for SHELFMANAGER_TEST_DATABASE_URL environment variable
    test_db_url = os.getenv('SHELFMANAGER_TEST_DATABASE_URL')
    if test_db_url:
        engine = create_async_db_engine(test_db_url)
        # Ensure a clean slate before tests: drop then create all tables
        await drop_all(engine, Base.metadata)
        await create_all(engine, Base.metadata)
    else:
        # Use in-memory SQLite for tests
        engine = create_async_db_engine("sqlite+aiosqlite:///:memory:")
        await create_all(engine, Base.metadata)

    yield engine

    if test_db_url:
        await drop_all(engine, Base.metadata)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test function."""
    async_session = create_session_factory(engine)
    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
def manager(db_session) -> Manager:
    return Manager(db_session, registry)


@pytest.fixture(scope="function")
def loose_manager(db_session) -> Manager:
    """Manager whose top-level calls are not atomic: each write commits on its own."""
    return Manager(db_session, registry, config=ManagerConfig(atomic=False))
