"""
Search Facets

Computes global facet counts over Published metadata records and caches
them in the injected result cache.

Facets
------
- dataTypes: records per dataset type
- organizations: records per owning organization name
- frameworkTypes: records per framework type
- years: records per production year
- topicCategories: most frequent keywords (first three per record, top 15)

Each facet is an independent query issued concurrently on its own session.
The aggregate either succeeds as a whole or fails as a whole; partially
computed facets are never returned or cached.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Any, Callable, Iterable, List, Optional, Tuple

from sqlalchemy import Select, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..api.models import FacetValue, SearchFacets
from ..core.cache import Cache, CacheKeys, InvalidationTracker, safe_delete, safe_get, safe_set
from ..db.models import MetadataRecord, MetadataStatus, Organization

logger = logging.getLogger("portal.facets")

KEYWORDS_PER_RECORD = 3
TOP_KEYWORDS = 15


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _published():
    return MetadataRecord.status == MetadataStatus.PUBLISHED


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value)).strip() or None


def _year_value(value: Any) -> Optional[str]:
    # EXTRACT returns numeric on PostgreSQL and integer on SQLite
    if value is None:
        return None
    return str(int(value))


def _sorted_facets(pairs: Iterable[Tuple[Optional[str], int]]) -> List[FacetValue]:
    """
    Drop empty values and order by count desc, then value asc.
    """
    facets = [FacetValue(value=value, count=int(count)) for value, count in pairs if value]
    facets.sort(key=lambda f: (-f.count, f.value))
    return facets


def count_keywords(keyword_lists: Iterable[Optional[List[str]]]) -> List[FacetValue]:
    """
    Count the first keywords of each record and keep the most frequent ones.
    """
    counter: Counter = Counter()
    for keywords in keyword_lists:
        for keyword in (keywords or [])[:KEYWORDS_PER_RECORD]:
            keyword = (keyword or "").strip()
            if keyword:
                counter[keyword] += 1
    return _sorted_facets(counter.items())[:TOP_KEYWORDS]


# ---------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------

class FacetAggregator:
    """
    Runs the facet queries concurrently, each in its own session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _rows(self, stmt: Select) -> List[Any]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.all())

    async def _grouped(self, column: Any, convert: Callable[[Any], Optional[str]], join_orgs: bool = False) -> List[FacetValue]:
        total = func.count(MetadataRecord.id).label("total")
        stmt = select(column.label("value"), total).select_from(MetadataRecord)
        if join_orgs:
            stmt = stmt.outerjoin(Organization, MetadataRecord.organization_id == Organization.id)
        stmt = stmt.where(_published()).group_by(column)

        rows = await self._rows(stmt)
        return _sorted_facets((convert(row.value), row.total) for row in rows)

    async def data_types(self) -> List[FacetValue]:
        return await self._grouped(MetadataRecord.data_type, _enum_value)

    async def organizations(self) -> List[FacetValue]:
        return await self._grouped(Organization.name, _enum_value, join_orgs=True)

    async def framework_types(self) -> List[FacetValue]:
        return await self._grouped(MetadataRecord.framework_type, _enum_value)

    async def years(self) -> List[FacetValue]:
        return await self._grouped(extract("year", MetadataRecord.production_date), _year_value)

    async def topic_categories(self) -> List[FacetValue]:
        stmt = (
            select(MetadataRecord.keywords)
            .where(_published(), MetadataRecord.keywords.isnot(None))
            .order_by(MetadataRecord.created_at, MetadataRecord.id)
        )
        rows = await self._rows(stmt)
        return count_keywords(row.keywords for row in rows)

    async def aggregate(self) -> SearchFacets:
        """
        Compute all facets. Raises if any facet query fails.
        """
        data_types, organizations, framework_types, years, topics = await asyncio.gather(
            self.data_types(),
            self.organizations(),
            self.framework_types(),
            self.years(),
            self.topic_categories(),
        )
        return SearchFacets(
            data_types=data_types,
            organizations=organizations,
            topic_categories=topics,
            framework_types=framework_types,
            years=years,
        )


# ---------------------------------------------------------------------
# Cached Facets
# ---------------------------------------------------------------------

class FacetService:
    """
    Serves facets from the cache, recomputing on a miss.

    Failed computations return empty facets and are not cached, so the next
    request retries. A computation that overlapped an invalidation is
    returned to its caller but not cached.
    """

    def __init__(
        self,
        aggregator: FacetAggregator,
        cache: Cache,
        ttl_seconds: int,
        tracker: Optional[InvalidationTracker] = None,
    ) -> None:
        self._aggregator = aggregator
        self._cache = cache
        self._ttl_ms = ttl_seconds * 1000
        self._tracker = tracker or InvalidationTracker()

    async def get_search_facets(self) -> SearchFacets:
        cached = safe_get(self._cache, CacheKeys.SEARCH_FACETS)
        if isinstance(cached, SearchFacets):
            return cached

        token = self._tracker.token(CacheKeys.SEARCH_FACETS)
        try:
            facets = await self._aggregator.aggregate()
        except Exception:
            logger.exception("Error computing search facets")
            return SearchFacets.empty()

        if not self._tracker.is_current(CacheKeys.SEARCH_FACETS, token):
            logger.debug("Facets invalidated during recompute; result not cached")
            return facets

        safe_set(self._cache, CacheKeys.SEARCH_FACETS, facets, self._ttl_ms)
        logger.debug("Search facets recomputed and cached")
        return facets

    def invalidate_search_facets_cache(self) -> None:
        self._tracker.bump(CacheKeys.SEARCH_FACETS)
        safe_delete(self._cache, CacheKeys.SEARCH_FACETS)
