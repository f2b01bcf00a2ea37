"""Engine and session lifecycle for the athlete and failure tables.

One process-wide async engine, created by ``init_db`` in the server lifespan
or at the start of a CLI command, and disposed by ``close_db``.

## Configuration

- DATABASE_URL: ``postgresql+asyncpg://...`` in deployment,
  ``sqlite+aiosqlite:///...`` for local runs and tests
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW: PostgreSQL pool sizing
  (ignored for SQLite, which shares one static connection)

## Usage

```python
from strava_weather.database import get_db, init_db

await init_db()

async with get_db() as session:
    result = await session.execute(select(Athlete))
```
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from strava_weather.config import get_settings
from strava_weather.database.models import Base

logger = logging.getLogger(__name__)

# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str | None = None) -> None:
    """Create the engine and session factory.

    Args:
        database_url: Override for DATABASE_URL (tests use in-memory SQLite)
    """
    global _engine, _session_factory

    settings = get_settings()
    url = database_url or settings.database_url

    logger.info(f"Connecting to database ({url.split(':', 1)[0]})")

    engine_kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,  # Verify connections before use
        )

    _engine = create_async_engine(url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.debug("Database session factory ready")


async def close_db() -> None:
    """Dispose of the engine. Safe to call when not initialized."""
    global _engine, _session_factory

    if _engine:
        logger.info("Closing database connection")
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def create_tables() -> None:
    """Create missing tables (``strava-weather init-db`` and tests)."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Open a session; rolled back on error and always closed.

    Nothing is committed implicitly: repositories call ``commit()``
    themselves.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    session = _session_factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
