"""
Search Routes

Faceted search over metadata records plus title suggestions.

- GET  /search                       filters from URL query parameters
- POST /search                       filters from a JSON body
- GET  /search/suggestions           title suggestions (`q`, `limit`)
- GET  /search/metadata-suggestions  alias of /search/suggestions

Both search variants normalize their input into the same `SearchFilters`,
so equivalent requests produce identical results. A rejected or failed
search returns HTTP 400 with `isSuccess: false`; anything unexpected falls
through to the global exception handler.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from ..auth.models import Viewer
from ..search.params import (
    json_getter,
    normalize_json_body,
    normalize_query_params,
    parse_json_body,
    query_getter,
    wants_facets,
)
from ..search.service import SearchService
from .dependencies import get_search_service, get_viewer
from .models import SearchResponse, SuggestionsResponse

router = APIRouter(prefix="/search", tags=["search"])


def _search_response(result: SearchResponse) -> JSONResponse:
    code = status.HTTP_200_OK if result.is_success else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content=result.to_payload())


@router.get("", summary="Search metadata records (query parameters)")
async def search_get(
    request: Request,
    service: Annotated[SearchService, Depends(get_search_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
) -> JSONResponse:
    """
    Accepts every documented alias, e.g. `q`/`query`, `dataTypes`/`dataType`,
    `bbox_north`/`n`. List filters may be repeated or comma-separated.
    """
    params = request.query_params
    filters = normalize_query_params(params)
    result = await service.search(filters, viewer, include_facets=wants_facets(query_getter(params)))
    return _search_response(result)


@router.post("", summary="Search metadata records (JSON body)")
async def search_post(
    request: Request,
    service: Annotated[SearchService, Depends(get_search_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
) -> JSONResponse:
    """
    Missing or malformed bodies are treated as an empty filter object.
    """
    body = parse_json_body(await request.body())
    filters = normalize_json_body(body)
    result = await service.search(filters, viewer, include_facets=wants_facets(json_getter(body)))
    return _search_response(result)


@router.get("/suggestions", summary="Title suggestions")
@router.get("/metadata-suggestions", include_in_schema=False)
async def suggestions(
    service: Annotated[SearchService, Depends(get_search_service)],
    viewer: Annotated[Viewer, Depends(get_viewer)],
    q: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
) -> JSONResponse:
    result: SuggestionsResponse = await service.suggest(q, limit, viewer)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_payload())
