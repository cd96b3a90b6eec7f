"""Database engine and sessions - async SQLAlchemy over asyncpg."""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from app.core.config import Settings, settings
from app.core.logging import get_logger

logger = get_logger("database")


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine with the pool limits from settings."""
    return create_async_engine(
        config.database_url,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
        pool_recycle=config.db_pool_recycle,
        pool_pre_ping=True,
        echo=config.debug and config.log_level.upper() == "DEBUG",
    )


engine = build_engine(settings)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session that commits on success and rolls back otherwise.

    BaseException is caught so a cancelled request rolls back too.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a request-scoped database session."""
    async with session_scope() as session:
        yield session


async def check_db_connection() -> bool:
    """Check if the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (OSError, asyncio.TimeoutError, SQLAlchemyError) as e:
        logger.warning(f"Database connection check failed: {e}")
        return False
