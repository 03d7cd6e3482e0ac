"""
Database Session Management

Async SQLAlchemy engine and session factory for the metadata store.

The URL comes from `settings.database_url`; PostgreSQL (asyncpg) in
production, SQLite (aiosqlite) for local runs and tests.
"""

from __future__ import annotations

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from ..config import settings
from .models import Base


async_engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session. Commits when the endpoint returns, rolls back
    when it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine = async_engine) -> None:
    """
    Create any missing tables. Used by the seed script and local setups;
    production schemas are managed outside the service.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
