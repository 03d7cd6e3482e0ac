from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..auth.models import UserContext, Viewer
from ..auth.security import PermissionChecker, RolePermissionChecker, get_current_user, resolve_viewer
from ..config import settings
from ..core.cache import Cache, InMemoryCache, InvalidationTracker
from ..db.session import AsyncSessionLocal, get_async_session
from ..records.service import MetadataRecordService
from ..search.compiler import MetadataSearchRepository
from ..search.facets import FacetAggregator, FacetService
from ..search.service import SearchService


# Process-wide singletons

@lru_cache
def get_cache() -> Cache:
    return InMemoryCache(default_ttl_ms=settings.record_cache_ttl_seconds * 1000)


@lru_cache
def get_invalidation_tracker() -> InvalidationTracker:
    return InvalidationTracker()


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return AsyncSessionLocal


@lru_cache
def get_permission_checker() -> PermissionChecker:
    return RolePermissionChecker(settings.draft_viewer_roles, settings.metadata_editor_roles)


@lru_cache
def get_facet_service() -> FacetService:
    return FacetService(
        aggregator=FacetAggregator(get_session_factory()),
        cache=get_cache(),
        ttl_seconds=settings.facets_cache_ttl_seconds,
        tracker=get_invalidation_tracker(),
    )


# Request-scoped

def get_viewer(
    user: Optional[UserContext] = Depends(get_current_user),
    permissions: PermissionChecker = Depends(get_permission_checker),
) -> Viewer:
    return resolve_viewer(user, permissions)


def get_search_service(
    session: AsyncSession = Depends(get_async_session),
    facet_service: FacetService = Depends(get_facet_service),
) -> SearchService:
    return SearchService(MetadataSearchRepository(session), facet_service)


def get_record_service(
    session: AsyncSession = Depends(get_async_session),
    cache: Cache = Depends(get_cache),
    facet_service: FacetService = Depends(get_facet_service),
    permissions: PermissionChecker = Depends(get_permission_checker),
    tracker: InvalidationTracker = Depends(get_invalidation_tracker),
) -> MetadataRecordService:
    return MetadataRecordService(session, cache, facet_service, permissions, tracker=tracker)
