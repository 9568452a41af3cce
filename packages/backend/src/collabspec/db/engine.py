"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
async_sessionmaker for per-operation sessions. Both are built from a
Settings object by create_app(), not at import time.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from collabspec.config import Settings
from collabspec.db.models import Base


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the engine. echo=True in debug to see SQL queries."""
    kwargs = {"echo": settings.debug}
    if settings.database_url.startswith("postgresql"):
        # Connection pool: min 5, max 20 connections.
        kwargs.update(pool_size=5, max_overflow=15)
    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that don't exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
