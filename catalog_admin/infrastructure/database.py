"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory for the SQL
document store backend. The engine is created on first use so the
in-memory backend never needs a database driver.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from catalog_admin.infrastructure.config import settings

# Base class for models
Base = declarative_base()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Get the async engine, creating it on first call.

    Args:
        database_url: Override for ``settings.database_url``.

    Returns:
        AsyncEngine instance.
    """
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            database_url or settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory bound to the shared engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create database tables if they don't exist."""
    # Register models on Base.metadata
    from catalog_admin.infrastructure import models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections and forget the shared engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
