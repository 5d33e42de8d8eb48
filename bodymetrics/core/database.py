"""Database engine and session dependency.

The async engine is created lazily so importing the application (tests, CLI
tooling) does not require a reachable database.
"""

from collections.abc import AsyncGenerator
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from bodymetrics.core.config import settings
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    """Return the process-wide async engine, creating it on first use."""
    global _engine
    if _engine is None:
        url = settings.database_url
        kwargs = {"echo": settings.database_echo, "future": True}
        if url.startswith("postgresql"):
            kwargs.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                # Disable prepared statement cache for PgBouncer compatibility
                connect_args={"statement_cache_size": 0},
            )
        _engine = create_async_engine(url, **kwargs)
        LOGGER.info("Created database engine", extra={"dialect": _engine.dialect.name})
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the engine."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _session_maker


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting async database session.

    Yields:
        AsyncSession: Database session
    """
    async with get_session_maker()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database() -> None:
    """Create tables that do not exist yet (development convenience)."""
    # Models must be imported so their tables are registered on Base.metadata
    from bodymetrics.database import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    LOGGER.info("Database tables ensured")


async def close_database() -> None:
    """Dispose of the engine and its pooled connections."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        LOGGER.info("Database engine disposed")
    _engine = None
    _session_maker = None
