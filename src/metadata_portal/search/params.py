"""
Search Parameter Normalization

Converts inbound request shapes into one canonical `SearchFilters` object:

- URL query strings, where each logical field has several historical alias
  names and list values may be repeated or comma-joined.
- JSON request bodies, using canonical field names plus legacy aliases and
  nested objects (`bbox`, `spatialBounds`, `temporalRange`).

Both sources are resolved through the same mechanism: for each canonical
field an ordered tuple of `(alias, transform)` pairs, where the first alias
whose transformed value is non-empty wins. Everything here is pure; invalid
values are dropped rather than rejected, because search is driven by
shareable URLs.
"""

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from ..api.models import BoundingBox, SearchFilters
from ..config import settings
from ..db.models import DatasetType, FrameworkType, MetadataStatus


Getter = Callable[[str], List[Any]]
Transform = Callable[[List[Any]], Optional[Any]]


@dataclass(frozen=True)
class Alias:
    name: str
    transform: Transform


AliasTable = Dict[str, Tuple[Alias, ...]]


# ---------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------

def first_non_empty(get: Getter, aliases: Tuple[Alias, ...]) -> Optional[Any]:
    """
    Return the first non-empty transformed value among `aliases`.

    An alias that is present but transforms to nothing (e.g. `sortBy=bogus`)
    does not stop the search; the next alias is tried.
    """
    for alias in aliases:
        raw = get(alias.name)
        if not raw:
            continue
        value = alias.transform(raw)
        if value is None or value == []:
            continue
        return value
    return None


def query_getter(params: Mapping[str, Any]) -> Getter:
    """
    Getter over a query-string mapping. Multi-dicts keep repeated values.
    """
    def get(name: str) -> List[Any]:
        if hasattr(params, "getlist"):
            return list(params.getlist(name))
        value = params.get(name)
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return list(value)
        return [value]

    return get


def json_getter(body: Mapping[str, Any]) -> Getter:
    """
    Getter over a parsed JSON object. Dotted names walk nested objects.
    """
    def get(name: str) -> List[Any]:
        node: Any = body
        for part in name.split("."):
            if not isinstance(node, Mapping):
                return []
            node = node.get(part)
        if node is None or isinstance(node, Mapping):
            return []
        if isinstance(node, (list, tuple)):
            return [v for v in node if v is not None]
        return [node]

    return get


# ---------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------

def text(values: List[Any]) -> Optional[str]:
    value = values[0]
    if isinstance(value, (dict, list)):
        return None
    value = str(value).strip()
    return value or None


def csv(values: List[Any]) -> Optional[List[str]]:
    items: List[str] = []
    for value in values:
        if isinstance(value, (dict, list)):
            continue
        for part in str(value).split(","):
            part = part.strip()
            if part and part not in items:
                items.append(part)
    return items or None


def enum_list(enum_cls: Type[enum.Enum]) -> Transform:
    """
    Comma-split and map each item case-insensitively onto `enum_cls` values.
    Unknown values are dropped.
    """
    lookup = {member.value.lower(): member for member in enum_cls}

    def transform(values: List[Any]) -> Optional[List[enum.Enum]]:
        members: List[enum.Enum] = []
        for item in csv(values) or []:
            member = lookup.get(item.lower())
            if member is not None and member not in members:
                members.append(member)
        return members or None

    return transform


def integer(values: List[Any]) -> Optional[int]:
    value = values[0]
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def number(values: List[Any]) -> Optional[float]:
    value = values[0]
    if isinstance(value, bool):
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


_SORT_FIELDS = {
    "relevance": "relevance",
    "createdat": "createdAt",
    "created": "createdAt",
    "date": "createdAt",
    "title": "title",
    "updatedat": "updatedAt",
    "updated": "updatedAt",
    "status": "status",
}


def sort_field(values: List[Any]) -> Optional[str]:
    raw = text(values)
    if raw is None:
        return None
    return _SORT_FIELDS.get(raw.lower())


def sort_order(values: List[Any]) -> Optional[str]:
    raw = text(values)
    if raw is None:
        return None
    raw = raw.lower()
    return raw if raw in ("asc", "desc") else None


statuses = enum_list(MetadataStatus)
framework_types = enum_list(FrameworkType)
dataset_types = enum_list(DatasetType)


# ---------------------------------------------------------------------
# Alias Tables
# ---------------------------------------------------------------------

QUERY_ALIASES: AliasTable = {
    "query": (Alias("q", text), Alias("query", text)),
    "organization_ids": (
        Alias("orgIds", csv),
        Alias("organizationIds", csv),
        Alias("organizationId", csv),
    ),
    "statuses": (Alias("status", statuses), Alias("statuses", statuses)),
    "start_date": (Alias("startDate", text), Alias("temporalExtentStartDate", text)),
    "end_date": (Alias("endDate", text), Alias("temporalExtentEndDate", text)),
    "framework_types": (
        Alias("frameworks", framework_types),
        Alias("frameworkTypes", framework_types),
        Alias("frameworkType", framework_types),
    ),
    "dataset_types": (
        Alias("types", dataset_types),
        Alias("dataTypes", dataset_types),
        Alias("datasetType", dataset_types),
    ),
    "sort_by": (Alias("sortBy", sort_field), Alias("sort", sort_field)),
    "sort_order": (Alias("sortOrder", sort_order), Alias("order", sort_order)),
    "page": (Alias("page", integer),),
    "page_size": (Alias("pageSize", integer), Alias("limit", integer)),
}

QUERY_BBOX_ALIASES: AliasTable = {
    "north": (Alias("bbox_north", number), Alias("n", number)),
    "south": (Alias("bbox_south", number), Alias("s", number)),
    "east": (Alias("bbox_east", number), Alias("e", number)),
    "west": (Alias("bbox_west", number), Alias("w", number)),
}

BODY_ALIASES: AliasTable = {
    "query": (Alias("query", text), Alias("q", text)),
    "organization_ids": (
        Alias("organizationIds", csv),
        Alias("organizationId", csv),
        Alias("orgIds", csv),
    ),
    "statuses": (Alias("statuses", statuses), Alias("status", statuses)),
    "start_date": (
        Alias("startDate", text),
        Alias("temporalExtentStartDate", text),
        Alias("temporalRange.start", text),
    ),
    "end_date": (
        Alias("endDate", text),
        Alias("temporalExtentEndDate", text),
        Alias("temporalRange.end", text),
    ),
    "framework_types": (
        Alias("frameworkTypes", framework_types),
        Alias("frameworkType", framework_types),
        Alias("frameworks", framework_types),
    ),
    "dataset_types": (
        Alias("datasetTypes", dataset_types),
        Alias("dataTypes", dataset_types),
        Alias("datasetType", dataset_types),
        Alias("types", dataset_types),
    ),
    "sort_by": (Alias("sortBy", sort_field), Alias("sort", sort_field)),
    "sort_order": (Alias("sortOrder", sort_order), Alias("order", sort_order)),
    "page": (Alias("page", integer),),
    "page_size": (Alias("pageSize", integer), Alias("limit", integer)),
}

BODY_BBOX_ALIASES: AliasTable = {
    side: (
        Alias(f"bbox.{side}", number),
        Alias(f"spatialBounds.{side}", number),
        Alias(f"bbox_{side}", number),
        Alias(side[0], number),
    )
    for side in ("north", "south", "east", "west")
}


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def _build_filters(get: Getter, fields: AliasTable, bbox_fields: AliasTable) -> SearchFilters:
    resolved: Dict[str, Any] = {}
    for field, aliases in fields.items():
        value = first_non_empty(get, aliases)
        if value is not None:
            resolved[field] = value

    bounds = {side: first_non_empty(get, aliases) for side, aliases in bbox_fields.items()}
    if all(v is not None for v in bounds.values()):
        resolved["bbox"] = BoundingBox(**bounds)

    resolved.setdefault("page", 1)
    resolved.setdefault("page_size", settings.default_page_size)
    return SearchFilters(**resolved)


def normalize_query_params(params: Mapping[str, Any]) -> SearchFilters:
    """
    Build canonical filters from URL query parameters.
    """
    return _build_filters(query_getter(params), QUERY_ALIASES, QUERY_BBOX_ALIASES)


def normalize_json_body(body: Any) -> SearchFilters:
    """
    Build canonical filters from a parsed JSON body. Non-objects count as `{}`.
    """
    if not isinstance(body, Mapping):
        body = {}
    return _build_filters(json_getter(body), BODY_ALIASES, BODY_BBOX_ALIASES)


def parse_json_body(raw: bytes) -> Dict[str, Any]:
    """
    Decode a request body, treating empty or malformed JSON as `{}`.
    """
    if not raw or not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


_FALSE_VALUES = {"false", "0", "no", "off"}


def wants_facets(get: Getter) -> bool:
    """
    Facets are included unless `facets`/`includeFacets` is explicitly false.
    """
    for name in ("includeFacets", "facets"):
        raw = get(name)
        if raw:
            value = raw[0]
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() not in _FALSE_VALUES
    return True
