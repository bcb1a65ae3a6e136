"""
Catalog filtering: facets, URL codec, query planning, residual filtering
and ordering.
"""
from storefront.catalog.models import FacetCatalog, FilterSelection, Product
from storefront.catalog.facets import build_facets, fetch_facets
from storefront.catalog.filtering import apply_filters
from storefront.catalog.ordering import order_products
from storefront.catalog.query_planner import NavigationContext, ProductQueryPlanner, QueryResult

__all__ = [
    "FacetCatalog",
    "FilterSelection",
    "Product",
    "build_facets",
    "fetch_facets",
    "apply_filters",
    "order_products",
    "NavigationContext",
    "ProductQueryPlanner",
    "QueryResult",
]
