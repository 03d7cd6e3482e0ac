import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport

from metadata_portal.main import app
from metadata_portal.api.dependencies import get_search_service
from metadata_portal.api.models import (
    SearchFacets,
    SearchResponse,
    SearchResultData,
    Suggestion,
    SuggestionsResponse,
)
from metadata_portal.db.models import DatasetType
from metadata_portal.search.service import SearchService


def ok_response(filters=None, facets=True):
    return SearchResponse(
        is_success=True,
        message="Found 0 metadata record(s).",
        data=SearchResultData(
            records=[],
            total_count=0,
            total_pages=0,
            current_page=1,
            page_size=20,
            applied_filters=filters.applied() if filters else {},
            facets=SearchFacets.empty() if facets else None,
        ),
    )


@pytest.fixture
def search_service():
    service = MagicMock(spec=SearchService)

    async def _search(filters, viewer, include_facets=True):
        return ok_response(filters, include_facets)

    service.search = AsyncMock(side_effect=_search)
    service.suggest = AsyncMock(
        return_value=SuggestionsResponse(is_success=True, message="Query too short", data=[])
    )
    return service


@pytest.fixture
def override_service(search_service):
    app.dependency_overrides[get_search_service] = lambda: search_service
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def async_client(override_service):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _filters(search_service):
    return search_service.search.await_args.args[0]


@pytest.mark.asyncio
async def test_get_search_envelope(async_client, search_service):
    resp = await async_client.get("/search", params={"q": "water", "types": "Raster,Vector", "page": "1"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["isSuccess"] is True
    assert body["data"]["appliedFilters"]["query"] == "water"
    assert body["data"]["appliedFilters"]["datasetTypes"] == ["Raster", "Vector"]
    assert "facets" in body["data"]

    assert _filters(search_service).dataset_types == [DatasetType.RASTER, DatasetType.VECTOR]


@pytest.mark.asyncio
async def test_get_and_post_resolve_to_same_filters(async_client, search_service):
    await async_client.get("/search?query=soil&dataTypes=Vector&pageSize=5")
    from_get = _filters(search_service)

    await async_client.post("/search", json={"query": "soil", "datasetTypes": ["Vector"], "pageSize": 5})
    from_post = _filters(search_service)

    assert from_get == from_post


@pytest.mark.asyncio
async def test_get_facets_false(async_client, search_service):
    resp = await async_client.get("/search", params={"facets": "false"})
    assert resp.status_code == 200
    assert "facets" not in resp.json()["data"]
    assert search_service.search.await_args.kwargs["include_facets"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [b"", b"{garbled", b"null"])
async def test_post_bad_body_is_empty_filters(async_client, search_service, content):
    resp = await async_client.post(
        "/search", content=content, headers={"content-type": "application/json"}
    )
    assert resp.status_code == 200
    filters = _filters(search_service)
    assert filters.query is None
    assert filters.page == 1


@pytest.mark.asyncio
async def test_failed_search_returns_400(async_client, search_service):
    search_service.search.side_effect = None
    search_service.search.return_value = SearchResponse(
        is_success=False, message="Failed to search metadata records."
    )

    resp = await async_client.get("/search")

    assert resp.status_code == 400
    assert resp.json() == {"isSuccess": False, "message": "Failed to search metadata records."}


@pytest.mark.asyncio
async def test_unexpected_error_returns_generic_500(async_client, search_service):
    search_service.search.side_effect = RuntimeError("secret internals")

    resp = await async_client.get("/search")

    assert resp.status_code == 500
    assert resp.json() == {"isSuccess": False, "message": "Internal server error"}
    assert "secret" not in resp.text


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/search/suggestions", "/search/metadata-suggestions"])
async def test_suggestion_paths(async_client, search_service, path):
    search_service.suggest.return_value = SuggestionsResponse(
        is_success=True,
        message="Found 1 metadata record(s).",
        data=[Suggestion(
            id="0b1c9a57-54a4-4f79-9d0d-3a1d2f8b6f11",
            title="Roads",
            category="Vector",
        )],
    )

    resp = await async_client.get(path, params={"q": "ro", "limit": "3"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["data"][0]["title"] == "Roads"
    assert body["data"][0]["type"] == "record"
    assert search_service.suggest.await_args.args[:2] == ("ro", 3)


@pytest.mark.asyncio
async def test_suggestions_without_results_are_200(async_client, search_service):
    search_service.suggest.return_value = SuggestionsResponse(
        is_success=True,
        message="Failed to search metadata records.",
        data=[],
    )

    resp = await async_client.get("/search/suggestions", params={"q": "ro"})

    assert resp.status_code == 200
    assert resp.json()["data"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/search/suggestions", "/search/metadata-suggestions"])
async def test_non_integer_limit_is_422_envelope(async_client, search_service, path):
    resp = await async_client.get(path, params={"q": "ro", "limit": "abc"})

    assert resp.status_code == 422
    assert resp.json() == {"isSuccess": False, "message": "Invalid request parameters."}
    search_service.suggest.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(async_client):
    resp = await async_client.get("/nowhere")

    assert resp.status_code == 404
    assert resp.json() == {"isSuccess": False, "message": "Not Found"}


@pytest.mark.asyncio
async def test_health(async_client):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
