"""
Product query planning for catalog pages.

Categorical selections are pushed to the backend as predicates (`eq` for a
single value, `in` for several). Flag dimensions are never pushed; they are
left to the residual client-side filter (see `storefront.catalog.filtering`).

On a category page with no categorical selection the URL slug is used as a
case-insensitive substring search over product name and SKU. The all-devices
page without selections is unfiltered. Results are always newest first.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

from storefront.catalog.models import CATEGORICAL_DIMENSIONS, FilterSelection, Product
from storefront.core.config import StorefrontConfig, get_config
from storefront.data.product_store import Predicate, ProductQuery, TextSearch
from storefront.errors import BackendError
from storefront.utils.logger import get_logger

logger = get_logger("catalog.query_planner")


@dataclass(frozen=True)
class NavigationContext:
    """Where the listing is being shown: a category slug or the all-devices page."""
    slug: str = ""

    @property
    def search_term(self) -> str:
        return unquote(self.slug or "").strip().lower()

    def is_all_devices(self, config: Optional[StorefrontConfig] = None) -> bool:
        config = config or get_config()
        term = self.search_term
        return not term or term == config.all_devices_slug.lower()


@dataclass
class QueryResult:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def products(self) -> List[Product]:
        return [Product.from_row(row) for row in self.rows]


def server_predicates(selection: FilterSelection) -> List[Predicate]:
    """Backend predicates for every categorical dimension with a selection."""
    predicates = []
    for dimension in CATEGORICAL_DIMENSIONS:
        values = selection.get(dimension.key)
        if values:
            predicates.append(Predicate.for_values(dimension.column, sorted(values)))
    return predicates


class ProductQueryPlanner:
    def __init__(self, store, config: Optional[StorefrontConfig] = None):
        self.store = store
        self.config = config or get_config()

    def build_query(self, context: NavigationContext, selection: FilterSelection) -> ProductQuery:
        predicates = server_predicates(selection)
        search = None
        if not predicates and not context.is_all_devices(self.config):
            search = TextSearch(context.search_term)
        return ProductQuery(predicates=tuple(predicates), search=search, order_by="date", descending=True)

    def plan(self, context: NavigationContext, selection: FilterSelection) -> QueryResult:
        """Run the query. A backend failure yields no rows and an error; it is not retried."""
        query = self.build_query(context, selection)
        try:
            rows = self.store.query_products(query)
        except BackendError as e:
            logger.error("planner: slug=%s result=error code=%s error=%s", context.slug, e.code, e)
            return QueryResult(rows=[], error=e.message, error_code=e.code)
        logger.info("planner: slug=%s predicates=%s search=%s row_count=%s",
                    context.slug, len(query.predicates), bool(query.search), len(rows))
        return QueryResult(rows=list(rows))
