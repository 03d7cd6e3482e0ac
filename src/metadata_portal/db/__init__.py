"""
Database Package

Provides SQLAlchemy async session management and model definitions
for the metadata portal.
"""

from .session import get_async_session, async_engine, AsyncSessionLocal, create_tables
from .models import (
    Base,
    DatasetType,
    FrameworkType,
    MetadataRecord,
    MetadataStatus,
    Organization,
)

__all__ = [
    "get_async_session",
    "async_engine",
    "AsyncSessionLocal",
    "create_tables",
    "Base",
    "DatasetType",
    "FrameworkType",
    "MetadataRecord",
    "MetadataStatus",
    "Organization",
]
