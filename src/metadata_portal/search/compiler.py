"""
Search Filter Compiler

Translates canonical `SearchFilters` into SQLAlchemy statements against the
`metadata_records` table and executes them.

Every predicate is optional and applied only when its filter is present; all
predicates are combined with AND:

- free text: case-insensitive substring over title, abstract and purpose
- organization / framework type / dataset type: IN predicates
- status: IN predicate when statuses are given; otherwise Published only
  for callers without draft visibility
- temporal: temporal extent start (or production date) within the range
- spatial: rectangle overlap with the record's bounding box
- sort: whitelisted columns, ties broken by record id
- pagination: offset/limit, with a separate count over the same predicates
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import ColumnElement, Select, and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..api.models import BoundingBox, SearchFilters
from ..config import settings
from ..db.models import MetadataRecord, MetadataStatus

logger = logging.getLogger("portal.search")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class InvalidSearchError(ValueError):
    """Raised when filters are well-formed but cannot be executed."""


# ---------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------

SORT_COLUMNS = {
    "createdAt": MetadataRecord.created_at,
    "title": MetadataRecord.title,
    "updatedAt": MetadataRecord.updated_at,
    "status": MetadataRecord.status,
}

DEFAULT_SORT_COLUMN = MetadataRecord.created_at


# ---------------------------------------------------------------------
# Predicate builders
# ---------------------------------------------------------------------

def _text_predicate(query: str, max_length: int) -> ColumnElement[bool]:
    if len(query) > max_length:
        raise InvalidSearchError(
            f"Search query too long. Maximum {max_length} characters allowed."
        )
    return or_(
        MetadataRecord.title.icontains(query, autoescape=True),
        MetadataRecord.abstract.icontains(query, autoescape=True),
        MetadataRecord.purpose.icontains(query, autoescape=True),
    )


def _parse_uuid_list(values: Sequence[str]) -> List[uuid.UUID]:
    parsed = []
    for value in values:
        try:
            parsed.append(uuid.UUID(value))
        except ValueError:
            raise InvalidSearchError(f"Invalid organization id: {value!r}.")
    return parsed


def parse_iso_date(value: str, label: str) -> date:
    """
    Accept `YYYY-MM-DD` or a full ISO timestamp; only the date part is used.
    """
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidSearchError(f"Invalid {label} date format. Use ISO date string.")


def validate_bbox(bbox: BoundingBox) -> None:
    for name, value in (("north", bbox.north), ("south", bbox.south)):
        if not -90 <= value <= 90:
            raise InvalidSearchError(f"Invalid bounding box: {name} must be within [-90, 90].")
    for name, value in (("east", bbox.east), ("west", bbox.west)):
        if not -180 <= value <= 180:
            raise InvalidSearchError(f"Invalid bounding box: {name} must be within [-180, 180].")
    if bbox.north < bbox.south:
        raise InvalidSearchError("Invalid bounding box: north must not be below south.")


def _bbox_predicate(bbox: BoundingBox) -> ColumnElement[bool]:
    validate_bbox(bbox)

    r = MetadataRecord
    has_extent = and_(
        r.bounding_box_north.isnot(None),
        r.bounding_box_south.isnot(None),
        r.bounding_box_east.isnot(None),
        r.bounding_box_west.isnot(None),
    )
    latitude = and_(
        r.bounding_box_north >= bbox.south,
        r.bounding_box_south <= bbox.north,
    )

    if bbox.crosses_antimeridian:
        # Query box is [west, 180] plus [-180, east]
        longitude = or_(
            r.bounding_box_east >= bbox.west,
            r.bounding_box_west <= bbox.east,
        )
    else:
        longitude = and_(
            r.bounding_box_east >= bbox.west,
            r.bounding_box_west <= bbox.east,
        )

    return and_(has_extent, latitude, longitude)


def build_conditions(
    filters: SearchFilters,
    can_view_drafts: bool,
    max_query_length: Optional[int] = None,
) -> List[ColumnElement[bool]]:
    """
    Return the WHERE clauses for `filters`, raising InvalidSearchError on bad input.
    """
    max_length = max_query_length or settings.max_query_length
    conditions: List[ColumnElement[bool]] = []

    if filters.query:
        conditions.append(_text_predicate(filters.query, max_length))

    if filters.organization_ids:
        conditions.append(
            MetadataRecord.organization_id.in_(_parse_uuid_list(filters.organization_ids))
        )

    if filters.statuses:
        conditions.append(MetadataRecord.status.in_(filters.statuses))
    elif not can_view_drafts:
        conditions.append(MetadataRecord.status == MetadataStatus.PUBLISHED)

    if filters.framework_types:
        conditions.append(MetadataRecord.framework_type.in_(filters.framework_types))

    if filters.dataset_types:
        conditions.append(MetadataRecord.data_type.in_(filters.dataset_types))

    temporal_anchor = func.coalesce(
        MetadataRecord.temporal_extent_from,
        MetadataRecord.production_date,
    )
    if filters.start_date:
        conditions.append(temporal_anchor >= parse_iso_date(filters.start_date, "start"))
    if filters.end_date:
        conditions.append(temporal_anchor <= parse_iso_date(filters.end_date, "end"))

    if filters.bbox is not None:
        conditions.append(_bbox_predicate(filters.bbox))

    return conditions


def build_order_by(filters: SearchFilters) -> List[ColumnElement]:
    """
    Sort clause for `filters`; always ends with the record id for stable pages.
    """
    tiebreak = MetadataRecord.id.asc()

    if filters.sort_by == "relevance" and filters.query:
        title_match = case(
            (MetadataRecord.title.icontains(filters.query, autoescape=True), 0),
            else_=1,
        )
        return [title_match.asc(), DEFAULT_SORT_COLUMN.desc(), tiebreak]

    column = SORT_COLUMNS.get(filters.sort_by or "", DEFAULT_SORT_COLUMN)
    ordered = column.asc() if filters.sort_order == "asc" else column.desc()
    return [ordered, tiebreak]


# ---------------------------------------------------------------------
# Compiled Query
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class CompiledSearch:
    conditions: List[ColumnElement[bool]]
    order_by: List[ColumnElement]
    limit: int
    offset: int

    def page_statement(self) -> Select:
        return (
            select(MetadataRecord)
            .options(selectinload(MetadataRecord.organization))
            .where(*self.conditions)
            .order_by(*self.order_by)
            .limit(self.limit)
            .offset(self.offset)
        )

    def count_statement(self) -> Select:
        return (
            select(func.count())
            .select_from(MetadataRecord)
            .where(*self.conditions)
        )


def compile_search(filters: SearchFilters, can_view_drafts: bool = False) -> CompiledSearch:
    return CompiledSearch(
        conditions=build_conditions(filters, can_view_drafts),
        order_by=build_order_by(filters),
        limit=filters.page_size,
        offset=filters.offset,
    )


# ---------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------

class MetadataSearchRepository:
    """
    Executes compiled searches against the metadata records table.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize with an async database session.

        Parameters
        ----------
        session : AsyncSession
            SQLAlchemy async session for database operations.
        """
        self._session = session

    async def search(
        self,
        filters: SearchFilters,
        can_view_drafts: bool = False,
    ) -> Tuple[List[MetadataRecord], int]:
        """
        Run the page query and the count query for `filters`.

        Returns
        -------
        Tuple[List[MetadataRecord], int]
            The requested page of records and the total number of matches.

        Raises
        ------
        InvalidSearchError
            If the filters cannot be compiled.
        SQLAlchemyError
            If the database rejects either query.
        """
        compiled = compile_search(filters, can_view_drafts)

        count_result = await self._session.execute(compiled.count_statement())
        total = count_result.scalar() or 0

        records: List[MetadataRecord] = []
        if total > compiled.offset:
            page_result = await self._session.execute(compiled.page_statement())
            records = list(page_result.scalars().all())

        logger.debug(
            "Search matched %d records, returning %d (offset %d)",
            total, len(records), compiled.offset,
        )
        return records, total
