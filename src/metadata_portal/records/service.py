"""
Metadata Record Service

Read and write access to individual metadata records.

Reads are cached under `metadata:{id}`. Every successful write commits and
then invalidates the search facets and all `metadata:`-scoped cache entries,
so the next search recomputes facets from the store.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..api.models import (
    BoundingBox,
    MetadataRecordCreate,
    MetadataRecordOut,
    MetadataRecordUpdate,
    TemporalExtent,
)
from ..auth.models import Viewer
from ..auth.security import PermissionChecker
from ..config import settings
from ..core.cache import (
    Cache,
    CacheKeys,
    InvalidationTracker,
    safe_delete_prefix,
    safe_get,
    safe_set,
)
from ..db.models import MetadataRecord, MetadataStatus
from ..search.compiler import InvalidSearchError, validate_bbox
from ..search.facets import FacetService

logger = logging.getLogger("portal.records")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class RecordError(Exception):
    """Base class for record service failures."""


class RecordNotFoundError(RecordError):
    pass


class PermissionDeniedError(RecordError):
    pass


class AuthenticationRequiredError(RecordError):
    pass


class RecordValidationError(RecordError, ValueError):
    pass


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

_REQUIRED_FIELDS = ("title", "abstract", "data_type", "status")


def _check_spatial(bbox: Optional[BoundingBox]) -> None:
    if bbox is None:
        return
    try:
        validate_bbox(bbox)
    except InvalidSearchError as exc:
        raise RecordValidationError(str(exc))


def _check_temporal(extent: Optional[TemporalExtent]) -> None:
    if extent and extent.start and extent.end and extent.start > extent.end:
        raise RecordValidationError("Temporal extent start must not be after its end.")


def _apply_spatial(record: MetadataRecord, bbox: Optional[BoundingBox]) -> None:
    if bbox is None:
        record.bounding_box_north = None
        record.bounding_box_south = None
        record.bounding_box_east = None
        record.bounding_box_west = None
        return

    record.bounding_box_north = bbox.north
    record.bounding_box_south = bbox.south
    record.bounding_box_east = bbox.east
    record.bounding_box_west = bbox.west


def _apply_temporal(record: MetadataRecord, extent: Optional[TemporalExtent]) -> None:
    record.temporal_extent_from = extent.start if extent else None
    record.temporal_extent_to = extent.end if extent else None


def _visible_to(status: MetadataStatus, creator_user_id: str, viewer: Viewer) -> bool:
    if status == MetadataStatus.PUBLISHED or viewer.can_view_drafts:
        return True
    return viewer.user_id is not None and creator_user_id == viewer.user_id


# ---------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------

class MetadataRecordService:
    """
    Record CRUD over a request-scoped session.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: Cache,
        facet_service: FacetService,
        permissions: PermissionChecker,
        ttl_seconds: Optional[int] = None,
        tracker: Optional[InvalidationTracker] = None,
    ) -> None:
        self._session = session
        self._tracker = tracker or InvalidationTracker()
        self._cache = cache
        self._facets = facet_service
        self._permissions = permissions
        ttl = settings.record_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._ttl_ms = ttl * 1000

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load(self, record_id: uuid.UUID) -> Optional[MetadataRecord]:
        return await self._session.get(
            MetadataRecord,
            record_id,
            options=[selectinload(MetadataRecord.organization)],
            populate_existing=True,
        )

    def _require(self, viewer: Viewer, action: str) -> None:
        if viewer.user is None:
            raise AuthenticationRequiredError("Authentication required.")
        if not self._permissions.can(viewer.user, action, "metadata"):
            raise PermissionDeniedError(f"You do not have permission to {action} metadata records.")

    async def _commit_and_invalidate(self) -> None:
        await self._session.commit()
        self._facets.invalidate_search_facets_cache()
        self._tracker.bump(CacheKeys.METADATA_PREFIX)
        safe_delete_prefix(self._cache, CacheKeys.METADATA_PREFIX)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_record(self, record_id: uuid.UUID, viewer: Viewer) -> MetadataRecordOut:
        """
        Fetch a single record.

        Records that are not Published are reported as missing unless the
        viewer may see drafts or created the record.

        Raises
        ------
        RecordNotFoundError
        """
        key = CacheKeys.metadata_record(record_id)

        out = safe_get(self._cache, key)
        if not isinstance(out, MetadataRecordOut):
            token = self._tracker.token(CacheKeys.METADATA_PREFIX)
            record = await self._load(record_id)
            if record is None:
                raise RecordNotFoundError("Metadata record not found.")
            out = MetadataRecordOut.from_record(record)
            if self._tracker.is_current(CacheKeys.METADATA_PREFIX, token):
                safe_set(self._cache, key, out, self._ttl_ms)

        if not _visible_to(out.status, out.creator_user_id, viewer):
            raise RecordNotFoundError("Metadata record not found.")

        return out

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_record(self, payload: MetadataRecordCreate, viewer: Viewer) -> MetadataRecordOut:
        """
        Create a Draft record owned by the viewer.

        Raises
        ------
        AuthenticationRequiredError, PermissionDeniedError, RecordValidationError
        """
        self._require(viewer, "create")
        _check_spatial(payload.spatial_extent)
        _check_temporal(payload.temporal_extent)

        record = MetadataRecord(
            title=payload.title,
            abstract=payload.abstract,
            purpose=payload.purpose,
            data_type=payload.data_type,
            framework_type=payload.framework_type,
            status=MetadataStatus.DRAFT,
            keywords=list(payload.keywords),
            production_date=payload.production_date,
            organization_id=payload.organization_id,
            creator_user_id=viewer.user_id,
        )
        _apply_spatial(record, payload.spatial_extent)
        _apply_temporal(record, payload.temporal_extent)

        self._session.add(record)
        await self._session.flush()
        record_id = record.id

        await self._commit_and_invalidate()
        logger.info("Metadata record %s created by %s", record_id, viewer.user_id)

        return MetadataRecordOut.from_record(await self._load(record_id))

    async def update_record(
        self,
        record_id: uuid.UUID,
        payload: MetadataRecordUpdate,
        viewer: Viewer,
    ) -> MetadataRecordOut:
        """
        Apply the fields present in `payload` to an existing record.

        Raises
        ------
        AuthenticationRequiredError, PermissionDeniedError,
        RecordNotFoundError, RecordValidationError
        """
        self._require(viewer, "update")

        record = await self._load(record_id)
        if record is None or not _visible_to(record.status, record.creator_user_id, viewer):
            raise RecordNotFoundError("Metadata record not found.")

        changes: Dict[str, Any] = payload.model_dump(exclude_unset=True)
        spatial = changes.pop("spatial_extent", False)
        temporal = changes.pop("temporal_extent", False)

        # Validate the whole payload before the record is touched; the
        # request session commits whatever is left on it.
        for field in _REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                raise RecordValidationError(f"{field} cannot be cleared.")
        if spatial is not False:
            _check_spatial(payload.spatial_extent)
        if temporal is not False:
            _check_temporal(payload.temporal_extent)

        for field, value in changes.items():
            setattr(record, field, value)

        if spatial is not False:
            _apply_spatial(record, payload.spatial_extent)
        if temporal is not False:
            _apply_temporal(record, payload.temporal_extent)

        await self._session.flush()
        await self._commit_and_invalidate()
        logger.info("Metadata record %s updated by %s", record_id, viewer.user_id)

        return MetadataRecordOut.from_record(await self._load(record_id))

    async def delete_record(self, record_id: uuid.UUID, viewer: Viewer) -> None:
        """
        Raises
        ------
        AuthenticationRequiredError, PermissionDeniedError, RecordNotFoundError
        """
        self._require(viewer, "delete")

        record = await self._load(record_id)
        if record is None or not _visible_to(record.status, record.creator_user_id, viewer):
            raise RecordNotFoundError("Metadata record not found.")

        await self._session.delete(record)
        await self._session.flush()
        await self._commit_and_invalidate()
        logger.info("Metadata record %s deleted by %s", record_id, viewer.user_id)
