"""
Async database session management and snapshot operations.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool, AsyncAdaptedQueuePool

from pairwatch.database.models import Base, SnapshotDB

logger = logging.getLogger(__name__)


class AsyncDatabaseManager:
    """Manages async database connections and operations."""

    def __init__(
        self,
        database_url: str = "sqlite+aiosqlite:///pairwatch.db",
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        """
        Initialize async database manager.

        Args:
            database_url: Database connection URL (async driver)
            echo: Whether to log SQL queries
            pool_size: Connection pool size
            max_overflow: Maximum overflow connections
        """
        self.database_url = database_url

        # Configure engine based on database type
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # In-memory SQLite lives as long as its single connection
            self.engine = create_async_engine(
                database_url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        elif database_url.startswith("sqlite"):
            # SQLite doesn't support connection pooling well
            self.engine = create_async_engine(
                database_url,
                echo=echo,
                poolclass=NullPool,
                connect_args={"check_same_thread": False},
            )
        else:
            # PostgreSQL (asyncpg), MySQL (aiomysql), etc.
            self.engine = create_async_engine(
                database_url,
                echo=echo,
                poolclass=AsyncAdaptedQueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,  # Verify connections before using
            )

        self.AsyncSessionLocal = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        logger.info(f"Async database manager initialized with URL: {database_url}")

    async def create_tables(self):
        """Create all tables in the database."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    async def close(self):
        """Close database engine and connections."""
        await self.engine.dispose()
        logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Get an async database session with automatic cleanup.

        Yields:
            AsyncSession instance
        """
        session = self.AsyncSessionLocal()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}", exc_info=True)
            raise
        finally:
            await session.close()

    async def save_snapshot(self, key: str, payload: bytes, pair_count: int) -> None:
        """
        Store `payload` under `key`, overwriting any previous value.

        Args:
            key: Logical snapshot key
            payload: Encoded snapshot
            pair_count: Number of pairs in the snapshot (for inspection)
        """
        async with self.get_session() as session:
            result = await session.execute(select(SnapshotDB).filter_by(key=key))
            existing = result.scalar_one_or_none()

            if existing:
                existing.payload = payload
                existing.pair_count = pair_count
            else:
                session.add(SnapshotDB(key=key, payload=payload, pair_count=pair_count))

        logger.debug(f"Saved snapshot '{key}' ({pair_count} pairs, {len(payload)} bytes)")

    async def load_snapshot(self, key: str) -> Optional[bytes]:
        """
        Get the payload stored under `key`.

        Returns:
            Encoded snapshot or None if nothing was saved
        """
        async with self.get_session() as session:
            result = await session.execute(select(SnapshotDB.payload).filter_by(key=key))
            return result.scalar_one_or_none()

    async def delete_snapshot(self, key: str) -> int:
        """
        Delete the snapshot stored under `key`.

        Returns:
            Number of rows deleted (0 or 1)
        """
        async with self.get_session() as session:
            result = await session.execute(delete(SnapshotDB).where(SnapshotDB.key == key))
            return result.rowcount or 0


# Singleton instance
_async_db_manager: Optional[AsyncDatabaseManager] = None


async def get_async_db_manager(
    database_url: str = "sqlite+aiosqlite:///pairwatch.db",
    echo: bool = False,
) -> AsyncDatabaseManager:
    """
    Get or create the async database manager singleton.

    Args:
        database_url: Database connection URL (with async driver)
        echo: Whether to log SQL queries

    Returns:
        AsyncDatabaseManager instance
    """
    global _async_db_manager

    if _async_db_manager is None:
        manager = AsyncDatabaseManager(database_url=database_url, echo=echo)
        await manager.create_tables()
        _async_db_manager = manager

    return _async_db_manager
