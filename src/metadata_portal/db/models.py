"""
SQLAlchemy Models

Defines the database schema consumed by the search service:
- Organizations (owning agencies)
- Metadata records (ISO-19115-like dataset descriptions)

Column types stay within what both PostgreSQL and SQLite understand so the
search queries can be exercised against a local database in tests.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, date
from typing import Optional, List

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------

class MetadataStatus(str, enum.Enum):
    DRAFT = "Draft"
    SUBMITTED_FOR_REVIEW = "Submitted for Review"
    PENDING_VALIDATION = "Pending Validation"
    NEEDS_REVISION = "Needs Revision"
    APPROVED = "Approved"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


class DatasetType(str, enum.Enum):
    RASTER = "Raster"
    VECTOR = "Vector"
    TABLE = "Table"
    SERVICE = "Service"
    APPLICATION = "Application"
    DOCUMENT = "Document"
    COLLECTION = "Collection"
    OTHER = "Other"


class FrameworkType(str, enum.Enum):
    FUNDAMENTAL = "Fundamental"
    THEMATIC = "Thematic"
    SPECIAL_INTEREST = "Special Interest"
    ADMINISTRATIVE = "Administrative"
    OTHER = "Other"


def _enum_values(enum_cls: type[enum.Enum]) -> List[str]:
    # Persist the human-readable value ("Needs Revision"), not the member name
    return [member.value for member in enum_cls]


KeywordList = ARRAY(Text).with_variant(JSON(), "sqlite")


# ---------------------------------------------------------------------
# Organization Model
# ---------------------------------------------------------------------

class Organization(Base):
    """
    An agency or node that owns metadata records.
    """
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    records: Mapped[List["MetadataRecord"]] = relationship(
        "MetadataRecord",
        back_populates="organization",
    )


# ---------------------------------------------------------------------
# Metadata Record Model
# ---------------------------------------------------------------------

class MetadataRecord(Base):
    """
    A geospatial dataset description.

    Spatial extent is stored as four decimal-degree bounds and temporal
    extent as a pair of dates; both are optional.
    """
    __tablename__ = "metadata_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    abstract: Mapped[str] = mapped_column(Text, nullable=False)
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    data_type: Mapped[DatasetType] = mapped_column(
        Enum(DatasetType, name="dataset_type_enum", values_callable=_enum_values),
        nullable=False,
    )
    framework_type: Mapped[Optional[FrameworkType]] = mapped_column(
        Enum(FrameworkType, name="framework_type_enum", values_callable=_enum_values),
        nullable=True,
    )
    status: Mapped[MetadataStatus] = mapped_column(
        Enum(MetadataStatus, name="metadata_status", values_callable=_enum_values),
        nullable=False,
        default=MetadataStatus.DRAFT,
    )

    keywords: Mapped[Optional[List[str]]] = mapped_column(KeywordList, nullable=True)
    production_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
    )
    creator_user_id: Mapped[str] = mapped_column(Text, nullable=False)

    bounding_box_north: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bounding_box_south: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bounding_box_east: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bounding_box_west: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    temporal_extent_from: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    temporal_extent_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    organization: Mapped[Optional["Organization"]] = relationship(
        "Organization",
        back_populates="records",
    )

    __table_args__ = (
        Index("idx_metadata_status", "status"),
        Index("idx_metadata_organization", "organization_id"),
        Index("idx_metadata_created", "created_at"),
    )
