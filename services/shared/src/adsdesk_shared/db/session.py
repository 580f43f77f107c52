"""Database session management via DatabaseManager class."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Self

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from adsdesk_shared.config.database import DatabaseSettings


class DatabaseManager:
    """Manages async database engine and session lifecycle.

    Usage:
        db = DatabaseManager.from_env()

        # In-memory SQLite for local runs
        db = DatabaseManager(DatabaseSettings(database_url="sqlite+aiosqlite://"))

        # As context manager
        async with db.session() as session:
            result = await session.execute(query)

        # As FastAPI dependency
        app.dependency_overrides[db.dependency] = ...

        # Cleanup
        await db.dispose()
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        if settings.is_memory_sqlite:
            # an in-memory database lives only as long as its single connection
            poolclass = StaticPool
        else:
            poolclass = NullPool if settings.use_null_pool else None
        self._engine = create_async_engine(
            settings.database_url,
            echo=settings.echo,
            poolclass=poolclass,
            pool_pre_ping=settings.pool_pre_ping,
        )
        if settings.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_env(cls) -> Self:
        """Create a DatabaseManager from environment variables."""
        return cls(DatabaseSettings())

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Get a database session with automatic commit/rollback.

        Commits on success, rolls back on exception.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def dependency(self) -> AsyncGenerator[AsyncSession]:
        """FastAPI Depends() compatible session provider."""
        async with self.session() as session:
            yield session

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def dispose(self) -> None:
        """Dispose of the engine and release all connections."""
        await self._engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    """Turn on FK enforcement so ON DELETE CASCADE on grants and assignments applies."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
