"""Async database engine and session management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from hostwatch.core.exceptions import PersistenceError
from hostwatch.core.settings import settings

from .tables import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and hands out transactional sessions."""

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.database_url
        connect_args = {}
        if self.url.startswith("sqlite"):
            # Concurrent evaluations write from several connections.
            connect_args["timeout"] = 30

        self.engine = create_async_engine(
            self.url,
            echo=settings.database_echo if echo is None else echo,
            connect_args=connect_args,
            pool_pre_ping=True,
        )
        self._sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)
        logger.info(
            "Database engine created",
            extra={"database": self.url.rsplit("@", 1)[-1]},
        )

    async def create_all(self) -> None:
        """Create any missing tables."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create tables: {e}") from e

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session wrapped in a transaction: commit on success, roll back on error."""
        async with self._sessionmaker() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(f"Database transaction failed: {e}")
                raise PersistenceError(f"Database operation failed: {e}") from e

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
