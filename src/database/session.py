"""
Mantrify - Database Session Management

Async SQLAlchemy session factory with connection pooling.

Usage:
    from src.database.session import get_db_session, init_db

    # Initialize on startup
    await init_db()

    # Use in async context
    async with get_db_session() as session:
        result = await session.execute(select(Mantra))
        mantras = result.scalars().all()

The engine is created lazily from DATABASE_URL on first use, so tests can
bind it to another URL with configure_engine() before anything connects.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from src.config.settings import get_app_settings
from src.database.models import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str) -> dict:
    # SQLite (tests, local tooling) does not take a queue pool
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "echo": False,  # Set to True for SQL query logging
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,  # Test connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }


def configure_engine(url: Optional[str] = None, **engine_kwargs) -> AsyncEngine:
    """
    (Re)create the global engine and session factory.

    Args:
        url: Database URL. Defaults to AppSettings.database_url.
        **engine_kwargs: Overrides passed to create_async_engine.

    Returns:
        The new AsyncEngine
    """
    global _engine, _session_factory

    database_url = url or get_app_settings().database_url
    options = _engine_options(database_url)
    options.update(engine_kwargs)

    _engine = create_async_engine(database_url, **options)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,  # Manual control of flush operations
    )
    return _engine


def get_engine() -> AsyncEngine:
    """Return the global engine, creating it from settings on first use."""
    if _engine is None:
        configure_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the global session factory, creating the engine on first use."""
    if _session_factory is None:
        configure_engine()
    return _session_factory


async def dispose_engine() -> None:
    """Close all pooled connections and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def init_db():
    """
    Initialize database schema.

    Creates all tables defined in models.py if they don't exist.
    Should be called on application startup.

    Note: For production, use Alembic migrations instead of create_all().
    """
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db():
    """
    Drop all database tables.

    WARNING: Destructive operation! Only use in development/testing.
    """
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions.

    Yields:
        AsyncSession: SQLAlchemy async session

    Automatically commits on success, rolls back on exception.
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def check_db_connection() -> bool:
    """
    Check database connectivity.

    Returns:
        bool: True if database is reachable, False otherwise
    """
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False
