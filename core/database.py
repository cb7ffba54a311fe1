"""Async SQLAlchemy database engine and session management.

Provides the async database layer with:
- Connection pooling (configurable pool_size/max_overflow)
- FastAPI dependency injection via get_session()
- Automatic session lifecycle (commit on success, rollback on error)
- SQLite support for local development and tests (foreign keys enabled)
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.config import get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine & session factory
# ---------------------------------------------------------------------------

def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with options suited to the backend."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo, poolclass=StaticPool)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    settings = get_settings().database
    return create_async_engine(
        url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        echo=echo,
        pool_pre_ping=True,
    )


_db_settings = get_settings().database

engine = create_engine_for(_db_settings.url, echo=_db_settings.echo)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session with automatic commit/rollback.

    Usage in FastAPI routes::

        @router.get("/contacts")
        async def list_contacts(session: AsyncSession = Depends(get_session)):
            result = await session.execute(select(Contact))
            return result.scalars().all()
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Lifecycle hooks
# ---------------------------------------------------------------------------

async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables from the registered models (dev/test only)."""
    from core.models.registry import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the connection pool on shutdown."""
    await engine.dispose()
