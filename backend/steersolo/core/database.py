"""
Database Connection and Session Management.

Async SQLAlchemy engine, declarative base and the per-request
session dependency.
"""

from typing import Any, AsyncGenerator

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from steersolo.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, applying pool sizing for server databases."""
    options: dict[str, Any] = {"echo": False}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return create_async_engine(database_url, **options)


def create_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory that keeps objects usable after commit."""
    return async_sessionmaker(bind, expire_on_commit=False)


engine = create_engine(settings.database_url)
async_session_maker = create_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency yielding a database session.

    Commits when the request handler returns and rolls back on error.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables. Production deployments use migrations instead."""
    # Registers every model on Base.metadata
    import steersolo.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Database tables ensured")


async def close_db() -> None:
    """Dispose of the engine connection pool."""
    await engine.dispose()
