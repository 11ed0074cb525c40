"""Async SQLAlchemy engine, session factory, and dialect-aware write helpers.

The engine is created once in the FastAPI lifespan. Request handlers receive a
session through the ``get_session`` dependency; background tasks, which outlive
the request, open their own with ``session_scope()``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from decision_hub.config import get_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative models."""

    pass


def generate_uuid() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def init_db(database_url: str | None = None, *, create_tables: bool = True) -> AsyncEngine:
    """Create the engine and session factory, optionally creating missing tables."""
    global _engine, _session_maker
    settings = get_settings()
    url = database_url or settings.database_url

    kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if url.startswith("postgresql"):
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=5, pool_recycle=3600)
    elif url.startswith("sqlite"):
        # One shared connection, so an in-memory database survives across sessions
        kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})

    _engine = create_async_engine(url, **kwargs)
    _session_maker = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    if create_tables:
        # Import registers every mapped class on Base.metadata
        from decision_hub.db import models  # noqa: F401

        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized", extra={"dialect": _engine.dialect.name})
    return _engine


async def close_db() -> None:
    """Dispose the connection pool."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connection pool closed")
    _engine = None
    _session_maker = None


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        raise RuntimeError("Database not initialized; call init_db() first")
    return _session_maker


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Open a session for work outside a request (background tasks, jobs).

    Commits are explicit in the service layer; anything left uncommitted when
    the block raises is rolled back.
    """
    async with get_session_maker()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    async with session_scope() as session:
        yield session


async def insert_or_ignore(session: AsyncSession, model: type[Base], values: dict[str, Any]) -> bool:
    """INSERT a row, silently skipping it if any unique constraint would be violated.

    Returns True when the row was written, False when it already existed.
    Concurrent duplicate writers resolve to a no-op on the second writer.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(model).values(**values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values).on_conflict_do_nothing()
    else:
        raise RuntimeError(f"Unsupported database dialect: {dialect}")

    result = await session.execute(stmt)
    return result.rowcount == 1
