"""Async database connection using SQLAlchemy (supports SQLite and PostgreSQL)."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from quiniela.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def get_database_url(url: str) -> str:
    """Convert database URL to async format."""
    # SQLite
    if url.startswith("sqlite") and "+aiosqlite" not in url:
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


DATABASE_URL = get_database_url(settings.DATABASE_URL)

if DATABASE_URL.startswith("sqlite"):
    # One shared connection so in-memory databases survive across sessions
    engine_kwargs = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
else:
    # Pre-ping drops connections left stale by a Postgres restart
    engine_kwargs = {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5, "pool_recycle": 300}

async_engine = create_async_engine(DATABASE_URL, echo=False, **engine_kwargs)

AsyncSessionLocal = sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    logger.info("Initializing database tables...")
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully.")


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections...")
    await async_engine.dispose()
    logger.info("Database connections closed.")


@asynccontextmanager
async def get_session_with_retry(max_retries: int = 3, retry_delay: float = 1.0):
    """
    Session for scheduled jobs, retrying while the first connection fails.

    Only opening the connection is retried (with doubling delay); errors
    raised while the caller uses the session propagate.
    """
    delay = retry_delay
    for attempt in range(1, max_retries + 1):
        session = AsyncSessionLocal()
        try:
            await session.connection()
            break
        except (InterfaceError, OperationalError) as e:
            await session.close()
            if attempt == max_retries:
                raise
            logger.warning(f"[DB] Connection failed (attempt {attempt}/{max_retries}): {e}; retrying in {delay}s")
            await asyncio.sleep(delay)
            delay *= 2

    try:
        yield session
    finally:
        await session.close()
