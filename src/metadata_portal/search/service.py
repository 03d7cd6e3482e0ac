"""
Search Orchestrator

Combines the filter compiler, the repository and the facet service into the
response envelope returned by the search endpoints.

The primary query and the facet lookup run concurrently. The facet lookup is
bounded by `settings.facets_timeout_seconds`; a slow or failing facet step
degrades to empty facets and never fails the search.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..api.models import (
    MetadataRecordOut,
    SearchFacets,
    SearchFilters,
    SearchResponse,
    SearchResultData,
    Suggestion,
    SuggestionsResponse,
)
from ..auth.models import ANONYMOUS, Viewer
from ..config import settings
from .compiler import InvalidSearchError, MetadataSearchRepository
from .facets import FacetService

logger = logging.getLogger("portal.search")

SEARCH_FAILED_MESSAGE = "Failed to search metadata records."
MIN_SUGGESTION_QUERY_LENGTH = 2


def _cancel(task: Optional[asyncio.Future]) -> None:
    if task is not None and not task.done():
        task.cancel()


class SearchService:
    """
    Executes searches and suggestion lookups for a single request.
    """

    def __init__(
        self,
        repository: MetadataSearchRepository,
        facet_service: FacetService,
        facets_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._repository = repository
        self._facets = facet_service
        self._facets_timeout = (
            settings.facets_timeout_seconds
            if facets_timeout_seconds is None
            else facets_timeout_seconds
        )

    # ------------------------------------------------------------------
    # Facets
    # ------------------------------------------------------------------

    async def _facets_or_empty(self) -> SearchFacets:
        try:
            return await asyncio.wait_for(
                self._facets.get_search_facets(),
                timeout=self._facets_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Facet computation exceeded %.1fs; returning empty facets",
                self._facets_timeout,
            )
        except Exception:
            logger.exception("Facet lookup failed; returning empty facets")
        return SearchFacets.empty()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        filters: SearchFilters,
        viewer: Viewer = ANONYMOUS,
        include_facets: bool = True,
    ) -> SearchResponse:
        """
        Run a faceted search.

        Parameters
        ----------
        filters : SearchFilters
            Canonical filters from the parameter normalizer.

        viewer : Viewer
            Caller; decides whether non-Published records are visible.

        include_facets : bool
            When False the facet step is skipped and `facets` is omitted.

        Returns
        -------
        SearchResponse
            `isSuccess=False` with a message when the filters are invalid or
            the primary query fails; facet problems never affect it.
        """
        facets_task = asyncio.ensure_future(self._facets_or_empty()) if include_facets else None

        try:
            records, total = await self._repository.search(filters, viewer.can_view_drafts)
        except InvalidSearchError as exc:
            _cancel(facets_task)
            logger.info("Rejected search: %s", exc)
            return SearchResponse(is_success=False, message=str(exc))
        except SQLAlchemyError:
            _cancel(facets_task)
            logger.exception("Error searching metadata records")
            return SearchResponse(is_success=False, message=SEARCH_FAILED_MESSAGE)
        except BaseException:
            _cancel(facets_task)
            raise

        facets = await facets_task if facets_task is not None else None

        data = SearchResultData(
            records=[MetadataRecordOut.from_record(r) for r in records],
            total_count=total,
            total_pages=math.ceil(total / filters.page_size),
            current_page=filters.page,
            page_size=filters.page_size,
            applied_filters=filters.applied(),
            facets=facets,
        )

        return SearchResponse(
            is_success=True,
            message=f"Found {total} metadata record(s).",
            data=data,
        )

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def suggest(
        self,
        q: Optional[str],
        limit: Optional[int] = None,
        viewer: Viewer = ANONYMOUS,
    ) -> SuggestionsResponse:
        """
        Title suggestions for a partial query, best title matches first.

        Suggestions never fail the request: a rejected query or a storage
        error yields an empty list.
        """
        query = (q or "").strip()
        if len(query) < MIN_SUGGESTION_QUERY_LENGTH:
            return SuggestionsResponse(is_success=True, message="Query too short", data=[])

        if limit is None:
            limit = settings.suggestions_default_limit
        limit = max(1, min(limit, settings.suggestions_max_limit))

        filters = SearchFilters(query=query, sort_by="relevance", page=1, page_size=limit)

        try:
            records, total = await self._repository.search(filters, viewer.can_view_drafts)
        except InvalidSearchError as exc:
            return SuggestionsResponse(is_success=True, message=str(exc), data=[])
        except SQLAlchemyError:
            logger.exception("Error fetching metadata suggestions")
            return SuggestionsResponse(is_success=True, message=SEARCH_FAILED_MESSAGE, data=[])

        suggestions = [
            Suggestion(
                id=record.id,
                title=record.title,
                category=getattr(record.data_type, "value", record.data_type),
                description=record.purpose or record.abstract or None,
            )
            for record in records
        ]

        return SuggestionsResponse(
            is_success=True,
            message=f"Found {total} metadata record(s).",
            data=suggestions,
        )
