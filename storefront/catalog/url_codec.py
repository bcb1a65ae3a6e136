"""
Two-way mapping between filter selections and page query parameters.

    form_factor=Laptop,Tablet&q=surface  <->  FilterSelection(form_factor={"Laptop", "Tablet"})

Reserved keys (free-text search, pagination, edit target) and unknown keys
are never interpreted as filters; reserved keys survive `encode` untouched.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode

from storefront.catalog.models import DIMENSIONS, DIMENSIONS_BY_PARAM, FilterSelection
from storefront.core.config import StorefrontConfig, get_config

QueryParams = List[Tuple[str, str]]
QueryInput = Union[None, str, Mapping[str, str], Iterable[Tuple[str, str]]]


def to_pairs(params: QueryInput) -> QueryParams:
    """Normalize a query string, mapping or pair sequence into ordered pairs."""
    if params is None:
        return []
    if isinstance(params, str):
        return parse_qsl(params.lstrip("?"), keep_blank_values=True)
    if isinstance(params, Mapping):
        return [(str(k), str(v)) for k, v in params.items()]
    return [(str(k), str(v)) for k, v in params]


def split_values(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def decode(params: QueryInput, config: Optional[StorefrontConfig] = None) -> FilterSelection:
    """Read the filter selection out of query parameters."""
    config = config or get_config()
    reserved = set(config.reserved_params)
    selected = {}
    for key, value in to_pairs(params):
        if key in reserved:
            continue
        dimension = DIMENSIONS_BY_PARAM.get(key)
        if dimension is None:
            continue
        selected[dimension.key] = split_values(value)
    return FilterSelection.from_mapping(selected)


def encode(selection: FilterSelection, existing: QueryInput = None) -> QueryParams:
    """
    Write `selection` into a copy of `existing`.

    Every filter key is removed first; non-filter parameters keep their
    position. Each dimension with a non-empty selection is appended as one
    comma-joined value.
    """
    params = [(k, v) for k, v in to_pairs(existing) if k not in DIMENSIONS_BY_PARAM]
    for dimension in DIMENSIONS:
        values = selection.get(dimension.key)
        if values:
            params.append((dimension.param, ",".join(sorted(values))))
    return params


def to_query_string(params: QueryParams) -> str:
    return urlencode(params, safe=",")


@dataclass(frozen=True)
class Navigation:
    """A client navigation: replaces the current history entry, no reload."""
    url: str
    replace: bool = True
    scroll: bool = False


def navigation_for(path: str, params: QueryParams) -> Navigation:
    query = to_query_string(params)
    return Navigation(url=f"{path}?{query}" if query else path)


def clear_filters(existing: QueryInput) -> QueryParams:
    return encode(FilterSelection(), existing)
