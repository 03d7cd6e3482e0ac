"""
API Models for the Metadata Portal

This module defines all Pydantic models used for request/response validation
across search, suggestion and metadata record endpoints.

Design Goals
------------
- Strong typing with closed shapes (unknown fields are rejected or dropped)
- camelCase on the wire, snake_case in Python
- Safe defaults (no shared mutable state)
- One response envelope: {isSuccess, message, data?}
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..config import settings
from ..db.models import DatasetType, FrameworkType, MetadataRecord, MetadataStatus


SortField = Literal["relevance", "createdAt", "title", "updatedAt", "status"]
SortOrder = Literal["asc", "desc"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------
# Spatial / Temporal Value Objects
# ---------------------------------------------------------------------

class BoundingBox(CamelModel):
    """
    Rectangle in decimal degrees.

    `west > east` describes a box crossing the antimeridian.
    """
    north: float
    south: float
    east: float
    west: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east


class TemporalExtent(CamelModel):
    start: Optional[date] = None
    end: Optional[date] = None


# ---------------------------------------------------------------------
# Canonical Search Filters
# ---------------------------------------------------------------------

class SearchFilters(CamelModel):
    """
    Canonical filter object produced by the parameter normalizer.

    Every optional field is either a meaningful value or None; list fields
    are never empty. A present field means "apply this predicate".
    """
    query: Optional[str] = None
    organization_ids: Optional[List[str]] = None
    statuses: Optional[List[MetadataStatus]] = None
    framework_types: Optional[List[FrameworkType]] = None
    dataset_types: Optional[List[DatasetType]] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    bbox: Optional[BoundingBox] = None
    sort_by: Optional[SortField] = None
    sort_order: Optional[SortOrder] = None
    page: int = 1
    page_size: int = Field(default_factory=lambda: settings.default_page_size)

    @field_validator("query", "start_date", "end_date")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("organization_ids", "statuses", "framework_types", "dataset_types")
    @classmethod
    def _empty_list_to_none(cls, v: Optional[List[Any]]) -> Optional[List[Any]]:
        return v or None

    @model_validator(mode="after")
    def _clamp_paging(self) -> "SearchFilters":
        self.page = max(1, self.page)
        self.page_size = min(max(1, self.page_size), settings.max_page_size)
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def applied(self) -> Dict[str, Any]:
        """Echo of the filters with unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---------------------------------------------------------------------
# Facets
# ---------------------------------------------------------------------

class FacetValue(CamelModel):
    value: str = Field(..., min_length=1)
    count: int = Field(..., ge=0)


class SearchFacets(CamelModel):
    """
    Global facet counts over Published records.
    """
    data_types: List[FacetValue] = Field(default_factory=list)
    organizations: List[FacetValue] = Field(default_factory=list)
    topic_categories: List[FacetValue] = Field(default_factory=list)
    framework_types: List[FacetValue] = Field(default_factory=list)
    years: List[FacetValue] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "SearchFacets":
        return cls()

    def is_empty(self) -> bool:
        return not (
            self.data_types
            or self.organizations
            or self.topic_categories
            or self.framework_types
            or self.years
        )


# ---------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------

class OrganizationSummary(CamelModel):
    id: uuid.UUID
    name: str


class MetadataRecordOut(CamelModel):
    """
    Public representation of a metadata record.
    """
    id: uuid.UUID
    title: str
    abstract: str
    purpose: Optional[str] = None
    data_type: DatasetType
    framework_type: Optional[FrameworkType] = None
    status: MetadataStatus
    keywords: List[str] = Field(default_factory=list)
    production_date: Optional[date] = None
    organization_id: Optional[uuid.UUID] = None
    organization: Optional[OrganizationSummary] = None
    creator_user_id: str
    spatial_extent: Optional[BoundingBox] = None
    temporal_extent: Optional[TemporalExtent] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: MetadataRecord) -> "MetadataRecordOut":
        bounds = (
            record.bounding_box_north,
            record.bounding_box_south,
            record.bounding_box_east,
            record.bounding_box_west,
        )
        spatial = None
        if all(b is not None for b in bounds):
            spatial = BoundingBox(north=bounds[0], south=bounds[1], east=bounds[2], west=bounds[3])

        temporal = None
        if record.temporal_extent_from or record.temporal_extent_to:
            temporal = TemporalExtent(
                start=record.temporal_extent_from,
                end=record.temporal_extent_to,
            )

        organization = None
        if record.organization is not None:
            organization = OrganizationSummary(
                id=record.organization.id,
                name=record.organization.name,
            )

        return cls(
            id=record.id,
            title=record.title,
            abstract=record.abstract,
            purpose=record.purpose,
            data_type=record.data_type,
            framework_type=record.framework_type,
            status=record.status,
            keywords=list(record.keywords or []),
            production_date=record.production_date,
            organization_id=record.organization_id,
            organization=organization,
            creator_user_id=record.creator_user_id,
            spatial_extent=spatial,
            temporal_extent=temporal,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class MetadataRecordCreate(CamelModel):
    """
    Payload for creating a metadata record. New records start as Draft.
    """
    title: str = Field(..., min_length=1)
    abstract: str = Field(..., min_length=1)
    purpose: Optional[str] = None
    data_type: DatasetType
    framework_type: Optional[FrameworkType] = None
    keywords: List[str] = Field(default_factory=list)
    production_date: Optional[date] = None
    organization_id: Optional[uuid.UUID] = None
    spatial_extent: Optional[BoundingBox] = None
    temporal_extent: Optional[TemporalExtent] = None


class MetadataRecordUpdate(CamelModel):
    """
    Partial update. Only fields present in the payload are written.
    """
    title: Optional[str] = Field(default=None, min_length=1)
    abstract: Optional[str] = Field(default=None, min_length=1)
    purpose: Optional[str] = None
    data_type: Optional[DatasetType] = None
    framework_type: Optional[FrameworkType] = None
    status: Optional[MetadataStatus] = None
    keywords: Optional[List[str]] = None
    production_date: Optional[date] = None
    organization_id: Optional[uuid.UUID] = None
    spatial_extent: Optional[BoundingBox] = None
    temporal_extent: Optional[TemporalExtent] = None


# ---------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------

class Suggestion(CamelModel):
    id: uuid.UUID
    title: str
    type: Literal["record"] = "record"
    category: str
    description: Optional[str] = None


# ---------------------------------------------------------------------
# Response Envelopes
# ---------------------------------------------------------------------

class SearchResultData(CamelModel):
    records: List[MetadataRecordOut] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)
    current_page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    applied_filters: Dict[str, Any] = Field(default_factory=dict)
    facets: Optional[SearchFacets] = None


class Envelope(CamelModel):
    """
    Standard response wrapper. `data` is omitted from the payload when absent.
    """
    is_success: bool
    message: str

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if payload.get("data") is None:
            payload.pop("data", None)
        return payload


class SearchResponse(Envelope):
    data: Optional[SearchResultData] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        data = payload.get("data")
        if data is not None and data.get("facets") is None:
            data.pop("facets", None)
        return payload


class SuggestionsResponse(Envelope):
    data: List[Suggestion] = Field(default_factory=list)


class RecordResponse(Envelope):
    data: Optional[MetadataRecordOut] = None
