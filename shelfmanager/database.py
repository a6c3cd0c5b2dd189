"""
Engine and session helpers.

Schema bootstrap is the caller's business; ``create_all``/``drop_all`` exist for
tests and examples that declare their tables with SQLAlchemy metadata.
"""

import logging
from typing import Any, Union

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import ManagerConfig

logger = logging.getLogger(__name__)


def create_async_db_engine(config: Union[ManagerConfig, str, None] = None, **overrides: Any) -> AsyncEngine:
    """Create an ``AsyncEngine`` from a config (or URL).

    SQLite connections get ``PRAGMA foreign_keys=ON`` so that foreign-key ordering
    is enforced the same way as on server databases.
    """
    if config is None:
        config = ManagerConfig()
    elif isinstance(config, str):
        config = ManagerConfig(database_url=config)
    url = config.database_url
    options: dict = {'echo': config.echo, 'future': True}
    if not url.startswith("sqlite"):
        # Generic async-friendly defaults
        options.update(pool_pre_ping=True, pool_recycle=3600)
    options.update(overrides)
    engine = create_async_engine(url, **options)
    if engine.dialect.name == 'sqlite':
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):  # pragma: no cover - driver hook
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    logger.debug("database: engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_all(engine: AsyncEngine, metadata) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def drop_all(engine: AsyncEngine, metadata) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
