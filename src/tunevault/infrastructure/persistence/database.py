"""Async engine and session scopes for the library store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tunevault.config import DatabaseSettings, Settings

logger = logging.getLogger(__name__)

# Seconds SQLite waits on a locked database file before giving up
SQLITE_BUSY_TIMEOUT = 30


def engine_options(db_settings: DatabaseSettings) -> dict[str, Any]:
    """Build create_async_engine() keyword arguments for the configured backend.

    PostgreSQL gets the pool sizing from settings. SQLite pools are tiny and managed by
    aiosqlite, so it only gets connect args, plus a StaticPool for ":memory:" URLs.
    """
    url = db_settings.url
    options: dict[str, Any] = {
        "echo": db_settings.echo,
        "pool_pre_ping": db_settings.pool_pre_ping,
    }

    if url.startswith("postgresql"):
        options.update(
            pool_size=db_settings.pool_size,
            max_overflow=db_settings.max_overflow,
            pool_timeout=db_settings.pool_timeout,
            pool_recycle=db_settings.pool_recycle,
        )
    elif url.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT,
        }
        # Hey future me - ":memory:" gives EVERY connection its own empty database!
        # StaticPool pins one connection so all sessions see the same tables.
        if ":memory:" in url:
            options["poolclass"] = StaticPool

    return options


class Database:
    """Owns the engine; hands out transactional session scopes."""

    def __init__(self, settings: Settings) -> None:
        """Initialize database with settings."""
        self.settings = settings
        url = settings.database.url

        self._engine = create_async_engine(url, **engine_options(settings.database))
        if url.startswith("sqlite"):
            self._enable_sqlite_foreign_keys()

        # expire_on_commit=False: the scanner commits per file and keeps using the loaded rows
        self._sessions = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def _enable_sqlite_foreign_keys(self) -> None:
        """Turn on SQLite foreign key enforcement for every new connection."""

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on clean exit and rolls back when the block raises."""
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self._engine.dispose()

    async def create_tables(self) -> None:
        """Create the schema straight from the models (tests; production uses alembic)."""
        from tunevault.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
