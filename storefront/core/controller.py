"""
Catalog page orchestration.

    query params -> decode -> plan/fetch -> normalize -> facets -> residual filter
                 -> order -> annotate with cart membership

Facets are computed from the fetched collection before the residual filter,
so narrowing one flag never hides the other dimensions' options.
"""
import time
from dataclasses import dataclass, field
from typing import List, Optional

from storefront.catalog import url_codec
from storefront.catalog.facets import build_facets, fetch_facets
from storefront.catalog.filtering import apply_filters
from storefront.catalog.models import BROWSE, ENTRY, FacetCatalog, FilterSelection, Product
from storefront.catalog.ordering import order_products
from storefront.catalog.query_planner import NavigationContext, ProductQueryPlanner
from storefront.core.config import StorefrontConfig, get_config
from storefront.utils.audit import ERROR, SUCCESS, AuditEvent, elapsed_ms
from storefront.utils.logger import get_logger

logger = get_logger("core.controller")

QUERY_ERROR_MESSAGE = "We couldn't load products right now. Please try again."
NO_PRODUCTS_MESSAGE = "No products found."
NO_MATCHES_MESSAGE = "No products found matching your filters."


@dataclass
class ProductView:
    product: Product
    in_cart: bool = False


@dataclass
class CatalogPage:
    slug: str
    selection: FilterSelection
    facets: FacetCatalog
    products: List[ProductView] = field(default_factory=list)
    fetched_count: int = 0
    error: Optional[str] = None
    empty_message: Optional[str] = None

    @property
    def active_count(self) -> int:
        return self.selection.active_count()


class CatalogController:
    def __init__(self, product_store, audit=None, config: Optional[StorefrontConfig] = None):
        self.store = product_store
        self.audit = audit
        self.config = config or get_config()
        self.planner = ProductQueryPlanner(product_store, self.config)

    def browse(self, slug: str, query_params=None, cart=None) -> CatalogPage:
        """Build one catalog page for `slug` and the current query parameters."""
        started = time.monotonic()
        context = NavigationContext(slug or "")
        selection = url_codec.decode(query_params, self.config)
        result = self.planner.plan(context, selection)

        products = result.products()
        facets = build_facets(products, BROWSE, self.config)
        page = CatalogPage(slug=slug, selection=selection, facets=facets, fetched_count=len(products))

        action = "products_fetch" if context.is_all_devices(self.config) else "category_products_fetch"
        if not result.ok:
            page.error = QUERY_ERROR_MESSAGE
            self._audit(f"{action}_failed", ERROR, f"Failed to fetch products: {result.error}",
                        {"slug": slug, "error_code": result.error_code}, "failed", started)
            return page

        visible = order_products(apply_filters(products, selection, self.config), self.config)
        if cart is not None:
            page.products = [ProductView(p, in_cart) for p, in_cart in cart.annotate(visible)]
        else:
            page.products = [ProductView(p) for p in visible]

        if not page.products:
            page.empty_message = NO_PRODUCTS_MESSAGE if not products else NO_MATCHES_MESSAGE
        self._audit(f"{action}_success", SUCCESS, f"Fetched {len(products)} products",
                    {"slug": slug, "filters": selection.as_dict(), "visible": len(page.products)},
                    "completed", started)
        return page

    def entry_facets(self) -> FacetCatalog:
        return fetch_facets(self.store, ENTRY, self.config)

    def browse_facets(self) -> FacetCatalog:
        return fetch_facets(self.store, BROWSE, self.config)

    # -- filter navigation --------------------------------------------------

    def navigate(self, path: str, selection: FilterSelection, existing=None) -> url_codec.Navigation:
        """Navigation that writes `selection` into the URL, keeping other params."""
        return url_codec.navigation_for(path, url_codec.encode(selection, existing))

    def toggle_filter(self, path: str, existing, key: str, value: str) -> url_codec.Navigation:
        selection = url_codec.decode(existing, self.config).toggle(key, value)
        return self.navigate(path, selection, existing)

    def clear_filters(self, path: str, existing=None) -> url_codec.Navigation:
        return url_codec.navigation_for(path, url_codec.clear_filters(existing))

    def _audit(self, action, level, message, details, status, started) -> None:
        if self.audit is None:
            return
        event = AuditEvent(type="product", level=level, action=action, message=message,
                           details=details, status=status, execution_time_ms=elapsed_ms(started))
        try:
            self.audit.record(event)
        except Exception as e:
            logger.warning("controller: audit action=%s result=error error=%s", action, e)
