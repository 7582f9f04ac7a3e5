"""Database Session Management for Agentur CRM.

Provides:
- Async SQLAlchemy engine creation
- AsyncSession factory with dependency injection
- Database initialization and table creation
- Transaction context manager
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from agentur_crm.config import get_settings
from agentur_crm.db.base import Base


# Global engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(db_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pooling suited to the backend.

    Connection pooling:
        - SQLite in-memory: one shared connection (StaticPool)
        - SQLite file: default pool, check_same_thread disabled
        - PostgreSQL: pool_size=5, max_overflow=10, pool_timeout=30
    """
    if "sqlite" in db_url:
        if ":memory:" in db_url:
            return create_async_engine(
                db_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        if "///" in db_url:
            Path(db_url.split("///", 1)[1]).parent.mkdir(parents=True, exist_ok=True)

        return create_async_engine(
            db_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )

    if "postgresql" in db_url or "postgres" in db_url:
        return create_async_engine(
            db_url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )

    return create_async_engine(
        db_url,
        echo=echo,
        pool_size=3,
        max_overflow=5,
        pool_timeout=30,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async database engine.

    Returns:
        AsyncEngine instance configured from settings.
    """
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database.url, echo=settings.database.echo)

    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory.

    Returns:
        Session factory configured for the application engine.
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())

    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Stores commit their own units of work; anything left pending when the
    request fails is rolled back here.

    Yields:
        AsyncSession bound to the application engine.
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions outside of FastAPI.

    Use this for CLI commands and health checks.

    Usage:
        async with get_db_context() as db:
            result = await db.execute(select(Model))
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _register_models() -> None:
    """Import all models so they are registered with Base.metadata."""
    from agentur_crm.db import models  # noqa: F401


async def init_db() -> None:
    """Initialize database and create all tables.

    Safe to call multiple times.
    """
    _register_models()

    engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections.

    Call this during application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None



async def create_test_engine(url: str = "sqlite+aiosqlite:///:memory:") -> AsyncEngine:
    """Create an engine with all tables, for tests.

    Args:
        url: Database URL (default: in-memory SQLite on one shared connection)

    Returns:
        AsyncEngine with the schema created.
    """
    _register_models()

    engine = build_engine(url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return engine
