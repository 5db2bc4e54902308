"""Database setup and session management."""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from oneanddone.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Database:
    """Engine and session factory for one database.

    Built once by the app factory (or a test fixture) and handed to whoever
    needs sessions; nothing in the package opens its own connection.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
        self.engine = create_async_engine(url, echo=echo, connect_args=connect_args)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, echo=settings.debug)

    def session(self) -> AsyncSession:
        """Open a new session (use as an async context manager)."""
        return self.session_factory()

    async def init(self) -> None:
        """Create all tables, enabling WAL mode on SQLite files."""
        # Import models to ensure they're registered with Base
        from oneanddone.models import season  # noqa: F401

        async with self.engine.begin() as conn:
            if self.url.startswith("sqlite") and ":memory:" not in self.url:
                # WAL and busy timeout for concurrent access
                await conn.execute(text("PRAGMA journal_mode=WAL"))
                await conn.execute(text("PRAGMA busy_timeout=30000"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database initialized at {self.url}")

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session from the app's Database."""
    database: Database = request.app.state.db
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
