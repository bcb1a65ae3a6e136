"""
Facet derivation for the catalog filters.

`build_facets` derives the selectable values for each categorical dimension
from a loaded product collection; `fetch_facets` runs the dedicated
distinct-value query used by data-entry forms. Flag dimensions always offer
the configured fixed values.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from storefront.catalog.models import (
    BROWSE,
    CATEGORICAL_DIMENSIONS,
    DIMENSIONS_BY_KEY,
    ENTRY,
    FLAG_DIMENSIONS,
    FacetCatalog,
    Product,
)
from storefront.core.config import StorefrontConfig, get_config
from storefront.errors import BackendError, MissingCustomValueError
from storefront.utils.logger import get_logger

logger = get_logger("catalog.facets")


def unique_values(values: Iterable[Any]) -> List[str]:
    """Drop None/blank values, de-duplicate, sort ascending."""
    seen = set()
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            seen.add(text)
    return sorted(seen)


def _assemble(observed: Dict[str, List[str]], context: str, config: StorefrontConfig) -> FacetCatalog:
    values: Dict[str, List[str]] = {}
    for dimension in CATEGORICAL_DIMENSIONS:
        options = list(observed.get(dimension.key, []))
        if context == ENTRY:
            options.append(config.custom_sentinel)
        values[dimension.key] = options
    for dimension in FLAG_DIMENSIONS:
        values[dimension.key] = list(config.flag_facet_values)
    return FacetCatalog(values=values, context=context)


def build_facets(
    products: Iterable[Product],
    context: str = BROWSE,
    config: Optional[StorefrontConfig] = None,
) -> FacetCatalog:
    """Derive the facet catalog from the active product collection."""
    config = config or get_config()
    products = list(products)
    observed = {
        dimension.key: unique_values(p.value_for(dimension) for p in products)
        for dimension in CATEGORICAL_DIMENSIONS
    }
    return _assemble(observed, context, config)


def fetch_facets(
    store,
    context: str = ENTRY,
    config: Optional[StorefrontConfig] = None,
) -> FacetCatalog:
    """
    Build facets from one distinct-value query per categorical column.

    A failed column query leaves that facet with only the sentinel (entry
    context) so the form can still take free text.
    """
    config = config or get_config()
    observed: Dict[str, List[str]] = {}
    for dimension in CATEGORICAL_DIMENSIONS:
        try:
            observed[dimension.key] = unique_values(store.distinct_values(dimension.column))
        except BackendError as e:
            logger.error("facets: method=fetch_facets column=%s result=error error=%s", dimension.column, e)
            observed[dimension.key] = []
    return _assemble(observed, context, config)


def resolve_entry_values(
    chosen: Dict[str, Optional[str]],
    custom_text: Dict[str, Optional[str]],
    config: Optional[StorefrontConfig] = None,
) -> Dict[str, Optional[str]]:
    """
    Replace the "Custom" sentinel with the form's override text.

    Raises MissingCustomValueError listing every field whose sentinel was
    chosen without override text.
    """
    config = config or get_config()
    resolved: Dict[str, Optional[str]] = {}
    missing: List[str] = []
    for key, value in chosen.items():
        if value == config.custom_sentinel:
            override = (custom_text.get(key) or "").strip()
            if not override:
                dimension = DIMENSIONS_BY_KEY.get(key)
                missing.append(dimension.label if dimension else key)
                continue
            resolved[key] = override
        else:
            resolved[key] = value
    if missing:
        raise MissingCustomValueError(missing)
    return resolved
