"""
AuthGate — Database Session Management
=======================================

What:  Async SQLAlchemy engine, session factory, FastAPI dependency, and the
       startup connectivity check.
Why:   Route handlers and the purge job share one pool and one transaction
       policy.
How:   Pooled asyncpg engine; the per-request session commits when the
       handler returns and rolls back when it raises.
When:  Engine is created at module import (no connection is opened until first
       use); `connect_db()` runs once in the application lifespan before the
       server starts accepting requests.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from authgate.config import settings

logger = logging.getLogger(__name__)


engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# expire_on_commit=False: attributes stay readable after commit without a
# new round trip, which the services rely on when building responses
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Lifecycle per request:
        open session ─▶ handler runs ─▶ commit
                                  └─▶ exception: rollback, re-raise
        the session is closed either way
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def connect_db() -> None:
    """
    What:  Verifies the database is reachable before the server listens.
    How:   Opens one pooled connection and runs SELECT 1.
    Raises:
        Whatever the driver raises on failure; the lifespan logs it and
        aborts startup so the server never listens without a database.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info(
        "Connected to database %s",
        make_url(settings.database_url).render_as_string(hide_password=True),
    )


async def dispose_engine() -> None:
    """Gracefully closes all connections in the pool (application shutdown)."""
    await engine.dispose()
