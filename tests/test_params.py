"""
Parameter Normalizer Tests

Covers alias resolution for query strings and JSON bodies, list splitting,
paging defaults/clamping and tolerance of malformed input.
"""

import pytest
from starlette.datastructures import QueryParams

from metadata_portal.config import settings
from metadata_portal.db.models import DatasetType, FrameworkType, MetadataStatus
from metadata_portal.search.params import (
    json_getter,
    normalize_json_body,
    normalize_query_params,
    parse_json_body,
    query_getter,
    wants_facets,
)


class TestQueryAliases:

    @pytest.mark.parametrize("qs", [
        "q=water&types=Raster",
        "query=water&dataTypes=Raster",
        "query=water&datasetType=raster",
    ])
    def test_equivalent_aliases_produce_same_filters(self, qs):
        filters = normalize_query_params(QueryParams(qs))
        assert filters.query == "water"
        assert filters.dataset_types == [DatasetType.RASTER]

    def test_first_alias_wins(self):
        filters = normalize_query_params(QueryParams("q=first&query=second"))
        assert filters.query == "first"

    def test_comma_split_equals_repeated(self):
        joined = normalize_query_params(QueryParams("types=Raster,Vector"))
        repeated = normalize_query_params(QueryParams("types=Raster&types=Vector"))
        assert joined.dataset_types == repeated.dataset_types == [DatasetType.RASTER, DatasetType.VECTOR]

    def test_comma_split_trims_and_dedupes(self):
        filters = normalize_query_params(QueryParams("orgIds= a , b,,a"))
        assert filters.organization_ids == ["a", "b"]

    def test_unknown_enum_values_dropped(self):
        filters = normalize_query_params(QueryParams("status=Published,Bogus&frameworks=special interest"))
        assert filters.statuses == [MetadataStatus.PUBLISHED]
        assert filters.framework_types == [FrameworkType.SPECIAL_INTEREST]

    def test_only_unknown_enum_values_means_no_filter(self):
        filters = normalize_query_params(QueryParams("types=Nope"))
        assert filters.dataset_types is None

    def test_blank_values_are_absent(self):
        filters = normalize_query_params(QueryParams("q=%20%20&startDate="))
        assert filters.query is None
        assert filters.start_date is None
        assert filters.applied() == {"page": 1, "pageSize": settings.default_page_size}

    def test_bbox_requires_all_four_sides(self):
        partial = normalize_query_params(QueryParams("n=10&s=5&e=12"))
        assert partial.bbox is None

        full = normalize_query_params(QueryParams("bbox_north=10&s=5&e=12&w=7"))
        assert (full.bbox.north, full.bbox.south, full.bbox.east, full.bbox.west) == (10, 5, 12, 7)

    def test_non_numeric_bbox_is_ignored(self):
        filters = normalize_query_params(QueryParams("n=abc&s=5&e=12&w=7"))
        assert filters.bbox is None


class TestSortAndPaging:

    def test_invalid_sort_order_is_dropped(self):
        filters = normalize_query_params(QueryParams("sortOrder=bogus"))
        assert filters.sort_order is None

    def test_sort_aliases(self):
        assert normalize_query_params(QueryParams("sort=date")).sort_by == "createdAt"
        assert normalize_query_params(QueryParams("sortBy=updated")).sort_by == "updatedAt"
        assert normalize_query_params(QueryParams("sortBy=bogus")).sort_by is None

    def test_defaults(self):
        filters = normalize_query_params(QueryParams(""))
        assert filters.page == 1
        assert filters.page_size == settings.default_page_size
        assert filters.offset == 0

    def test_page_and_page_size_clamped(self):
        filters = normalize_query_params(QueryParams("page=-3&pageSize=100000"))
        assert filters.page == 1
        assert filters.page_size == settings.max_page_size

        filters = normalize_query_params(QueryParams("page=3&limit=0"))
        assert filters.page == 3
        assert filters.page_size == 1

    def test_non_integer_page_falls_back(self):
        filters = normalize_query_params(QueryParams("page=two&pageSize=ten"))
        assert filters.page == 1
        assert filters.page_size == settings.default_page_size

    def test_offset(self):
        filters = normalize_query_params(QueryParams("page=3&pageSize=10"))
        assert filters.offset == 20


class TestJsonBody:

    def test_canonical_and_nested_fields(self):
        filters = normalize_json_body({
            "query": "roads",
            "datasetTypes": ["Vector"],
            "organizationIds": ["org-1", "org-2"],
            "temporalRange": {"start": "2020-01-01", "end": "2021-12-31"},
            "spatialBounds": {"north": 10, "south": 5, "east": 12, "west": 7},
            "sortBy": "title",
            "sortOrder": "asc",
            "page": 2,
            "pageSize": 5,
        })
        assert filters.query == "roads"
        assert filters.dataset_types == [DatasetType.VECTOR]
        assert filters.organization_ids == ["org-1", "org-2"]
        assert filters.start_date == "2020-01-01"
        assert filters.end_date == "2021-12-31"
        assert filters.bbox.west == 7
        assert (filters.sort_by, filters.sort_order, filters.page, filters.page_size) == ("title", "asc", 2, 5)

    def test_body_matches_query_string(self):
        from_body = normalize_json_body({"q": "water", "types": "Raster,Vector", "limit": 10})
        from_query = normalize_query_params(QueryParams("q=water&types=Raster,Vector&limit=10"))
        assert from_body == from_query

    def test_non_object_body_is_empty(self):
        assert normalize_json_body(["not", "an", "object"]) == normalize_json_body({})

    @pytest.mark.parametrize("raw", [b"", b"   ", b"{not json", b"[1, 2]", b"\xff\xfe"])
    def test_malformed_body_parses_as_empty(self, raw):
        assert parse_json_body(raw) == {}

    def test_valid_body(self):
        assert parse_json_body(b'{"q": "x"}') == {"q": "x"}


class TestWantsFacets:

    def test_default_true(self):
        assert wants_facets(query_getter(QueryParams(""))) is True

    @pytest.mark.parametrize("value", ["false", "0", "No", "off"])
    def test_false_values(self, value):
        assert wants_facets(query_getter(QueryParams(f"facets={value}"))) is False

    def test_json_boolean(self):
        assert wants_facets(json_getter({"includeFacets": False})) is False
        assert wants_facets(json_getter({"includeFacets": True})) is True
