"""
Shared fixtures: a throwaway SQLite database per test and a record builder.
"""

import uuid
from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from metadata_portal.db.models import (
    Base,
    DatasetType,
    MetadataRecord,
    MetadataStatus,
    Organization,
)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def build_record(n: int = 0, **overrides: Any) -> MetadataRecord:
    """
    A Published Raster record; `n` staggers created_at by one minute.
    """
    fields = dict(
        id=uuid.uuid4(),
        title=f"Record {n:03d}",
        abstract=f"Abstract for record {n}",
        data_type=DatasetType.RASTER,
        status=MetadataStatus.PUBLISHED,
        keywords=[],
        creator_user_id="creator-1",
        created_at=BASE_TIME + timedelta(minutes=n),
        updated_at=BASE_TIME + timedelta(minutes=n),
    )
    fields.update(overrides)
    return MetadataRecord(**fields)


@pytest.fixture
def add_records(session_factory):
    """
    Persist records (and optional organizations) in their own session.
    """
    async def _add(*objects):
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()
        return list(objects)

    return _add


@pytest.fixture
def organization():
    return Organization(id=uuid.uuid4(), name="Survey Office", created_at=BASE_TIME)
