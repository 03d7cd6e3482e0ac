"""
Search Orchestrator Tests

Repository and facet service are mocked; the focus is the envelope and the
degradation rules.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from metadata_portal.api.models import FacetValue, SearchFacets, SearchFilters
from metadata_portal.auth.models import UserContext, Viewer
from metadata_portal.search.compiler import InvalidSearchError, MetadataSearchRepository
from metadata_portal.search.facets import FacetService
from metadata_portal.search.service import SearchService

from conftest import build_record

FACETS = SearchFacets(years=[FacetValue(value="2020", count=4)])


@pytest.fixture
def repository():
    repo = MagicMock(spec=MetadataSearchRepository)
    repo.search = AsyncMock(return_value=([build_record(1), build_record(2)], 45))
    return repo


@pytest.fixture
def facet_service():
    service = MagicMock(spec=FacetService)
    service.get_search_facets = AsyncMock(return_value=FACETS)
    return service


@pytest.fixture
def service(repository, facet_service):
    return SearchService(repository, facet_service, facets_timeout_seconds=0.2)


class TestSearch:

    async def test_success_envelope(self, service, repository):
        filters = SearchFilters(query="water", page=2, page_size=20)

        result = await service.search(filters)

        assert result.is_success is True
        assert result.message == "Found 45 metadata record(s)."
        assert result.data.total_count == 45
        assert result.data.total_pages == 3
        assert result.data.current_page == 2
        assert result.data.page_size == 20
        assert len(result.data.records) == 2
        assert result.data.facets == FACETS
        assert result.data.applied_filters == {"query": "water", "page": 2, "pageSize": 20}
        repository.search.assert_awaited_once_with(filters, False)

    async def test_zero_results(self, service, repository):
        repository.search.return_value = ([], 0)
        result = await service.search(SearchFilters())
        assert result.is_success is True
        assert result.data.total_pages == 0
        assert result.message == "Found 0 metadata record(s)."

    async def test_draft_visibility_passed_to_repository(self, service, repository):
        viewer = Viewer(user=UserContext(user_id="u1", roles=["System Admin"]), can_view_drafts=True)
        await service.search(SearchFilters(), viewer)
        assert repository.search.await_args.args[1] is True

    async def test_facets_skipped_when_not_requested(self, service, facet_service):
        result = await service.search(SearchFilters(), include_facets=False)
        assert result.data.facets is None
        assert "facets" not in result.to_payload()["data"]
        facet_service.get_search_facets.assert_not_awaited()

    async def test_facet_failure_degrades_to_empty(self, service, facet_service):
        facet_service.get_search_facets.side_effect = RuntimeError("boom")
        result = await service.search(SearchFilters())
        assert result.is_success is True
        assert result.data.facets.is_empty()
        assert result.data.total_count == 45

    async def test_facet_timeout_degrades_to_empty(self, service, facet_service):
        async def slow():
            await asyncio.sleep(5)
            return FACETS

        facet_service.get_search_facets.side_effect = slow
        result = await service.search(SearchFilters())
        assert result.is_success is True
        assert result.data.facets.is_empty()

    async def test_invalid_search(self, service, repository):
        repository.search.side_effect = InvalidSearchError("Invalid start date format. Use ISO date string.")
        result = await service.search(SearchFilters(start_date="nope"))
        assert result.is_success is False
        assert result.message == "Invalid start date format. Use ISO date string."
        assert result.data is None
        assert "data" not in result.to_payload()

    async def test_storage_failure(self, service, repository):
        repository.search.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        result = await service.search(SearchFilters())
        assert result.is_success is False
        assert result.message == "Failed to search metadata records."


class TestSuggest:

    async def test_short_query(self, service, repository):
        result = await service.suggest("a")
        assert result.is_success is True
        assert result.message == "Query too short"
        assert result.data == []
        repository.search.assert_not_awaited()

    async def test_suggestions(self, service, repository):
        result = await service.suggest("record", limit=2)
        assert [s.title for s in result.data] == ["Record 001", "Record 002"]
        assert result.data[0].category == "Raster"
        assert result.data[0].type == "record"

        filters = repository.search.await_args.args[0]
        assert filters.query == "record"
        assert filters.page_size == 2
        assert filters.sort_by == "relevance"

    @pytest.mark.parametrize("requested, expected", [(None, 5), (0, 1), (500, 50)])
    async def test_limit_clamped(self, service, repository, requested, expected):
        await service.suggest("record", limit=requested)
        assert repository.search.await_args.args[0].page_size == expected

    async def test_storage_failure_yields_empty_list(self, service, repository):
        repository.search.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        result = await service.suggest("record")

        assert result.is_success is True
        assert result.message == "Failed to search metadata records."
        assert result.data == []
