"""
Postgres access for the reconciliation worker.

One async SQLAlchemy engine per process. The repository opens a short
session per call: read sessions never commit, write sessions commit or roll
back as a unit, so no transaction spans a reconciliation cycle.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.models.orm import Base
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """Owns the engine and hands out per-call sessions."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("DatabaseManager.connect() has not been awaited")
        return self._engine

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            raise RuntimeError("DatabaseManager.connect() has not been awaited")
        return self._sessions

    async def connect(self) -> None:
        s = self._settings
        self._engine = create_async_engine(
            s.database_url_str,
            pool_size=s.db_pool_min,
            max_overflow=max(0, s.db_pool_max - s.db_pool_min),
            pool_pre_ping=True,
            echo=s.debug,
            connect_args={"command_timeout": s.db_command_timeout},
        )
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("database_connected", url=s.database_url_safe_log, pool_max=s.db_pool_max)

    async def create_schema(self) -> None:
        """Create the matches, players and user_teams tables when missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready", tables=sorted(Base.metadata.tables))

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.info("database_disconnected")

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with self._factory()() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Commits when the block exits cleanly, rolls back and re-raises otherwise."""
        async with self._factory()() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
