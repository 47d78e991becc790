# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

The engine and sessionmaker are built explicitly and handed to the request
layer, which opens one session per core operation. Nothing here is a
module-level singleton.

Uses SQLAlchemy 2.0 async API (asyncpg in production, aiosqlite in tests).

Example:
    from academy.infrastructure.database.connection import Database

    database = Database.from_settings(settings.database)
    await database.create_schema()

    async with database.session() as session:
        service = EnrollmentService(session, event_bus=bus)
        await service.assign_student_to_batch(auth, student_id=1, batch_id=2)

    await database.close()
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from academy.core.exceptions import DatabaseError
from academy.infrastructure.database.models import Base

if TYPE_CHECKING:
    from academy.core.config.settings import DatabaseSettings

# Seconds SQLite waits on a locked database before reporting busy
SQLITE_BUSY_TIMEOUT = 30


def build_engine(url: str, *, echo: bool = False, **engine_kwargs: Any) -> AsyncEngine:
    """Create an async engine for the given URL.

    SQLite gets a generous busy timeout so concurrent writers queue on the
    database lock instead of failing immediately.

    Args:
        url: Async SQLAlchemy URL.
        echo: Log SQL statements.
        **engine_kwargs: Extra create_async_engine arguments.

    Returns:
        The async engine.

    Raises:
        DatabaseError: If the engine cannot be created.
    """
    try:
        if url.startswith("sqlite"):
            connect_args = engine_kwargs.pop("connect_args", {})
            connect_args.setdefault("timeout", SQLITE_BUSY_TIMEOUT)
            return create_async_engine(url, echo=echo, connect_args=connect_args, **engine_kwargs)

        return create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=1800,
            **engine_kwargs,
        )
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used for core operations."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class Database:
    """Owns an engine and its session factory.

    Attributes:
        engine: The SQLAlchemy async engine.
        sessionmaker: Factory for per-operation sessions.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize from an existing engine.

        Args:
            engine: Async engine to wrap.
        """
        self.engine = engine
        self.sessionmaker = build_sessionmaker(engine)

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False, **engine_kwargs: Any) -> "Database":
        """Build a Database for a URL."""
        return cls(build_engine(url, echo=echo, **engine_kwargs))

    @classmethod
    def from_settings(cls, settings: "DatabaseSettings", *, echo: bool = False) -> "Database":
        """Build a Database from DatabaseSettings."""
        if settings.is_sqlite:
            return cls.from_url(settings.url, echo=echo)
        return cls.from_url(
            settings.url,
            echo=echo,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session for one core operation.

        Services commit or roll back their own unit of work; anything left
        uncommitted when the block exits is rolled back on close.

        Yields:
            AsyncSession for database operations.
        """
        async with self.sessionmaker() as session:
            yield session

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet.

        Raises:
            DatabaseError: If schema creation fails.
        """
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to create schema", e) from e

    async def check_connection(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if the database is reachable, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    async def close(self) -> None:
        """Dispose of the connection pool."""
        await self.engine.dispose()
