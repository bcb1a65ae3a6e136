"""
FastAPI server for the storefront catalog and cart.

Usage:
    uvicorn storefront.api.server:app --reload --port 8000

Authentication is handled upstream; the signed-in user's id arrives in the
X-User-Id header.
"""
import threading
from collections import OrderedDict
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from dotenv import load_dotenv
load_dotenv()

from storefront import __version__
from storefront.api.models import (
    AddToCartRequest,
    CartItemModel,
    CartResponse,
    CatalogResponse,
    FacetsResponse,
    FilterNavigationRequest,
    HealthResponse,
    NavigationResponse,
    ProductSummary,
    UpdateQuantityRequest,
)
from storefront.cart.reconciler import CartConflict, CartReconciler, CartResult
from storefront.cart.store import get_cart_store
from storefront.catalog.models import BROWSE, ENTRY, DIMENSIONS_BY_KEY, FilterSelection
from storefront.core.config import StorefrontConfig, get_config
from storefront.core.controller import CatalogController, ProductView
from storefront.data.product_store import get_product_store
from storefront.utils.audit import get_audit_recorder
from storefront.utils.logger import configure_logging, get_logger

logger = get_logger("api.server")

app = FastAPI(
    title="Storefront API",
    description="Catalog filtering and cart reconciliation for the device storefront",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Cart mirrors: user_id -> CartReconciler, least recently used first
carts: "OrderedDict[str, CartReconciler]" = OrderedDict()
carts_lock = threading.Lock()

CONFLICT_STATUS = {
    CartConflict.ALREADY_IN_CART: 409,
    CartConflict.INVALID_PRODUCT: 409,
    CartConflict.BUSY: 409,
    CartConflict.PRODUCT_NOT_FOUND: 404,
    CartConflict.FAILED: 502,
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_settings() -> StorefrontConfig:
    return get_config()


def get_products():
    return get_product_store()


def get_carts():
    return get_cart_store()


def get_audit():
    return get_audit_recorder()


def require_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Sign in to use the cart")
    return x_user_id


def get_or_create_cart(user_id: str, store, audit, config: StorefrontConfig,
                       refresh: bool = False) -> CartReconciler:
    """Get the user's cart mirror, loading it from the store on first use or when asked."""
    with carts_lock:
        cart = carts.get(user_id)
        if cart is None:
            cart = CartReconciler(store, user_id, audit=audit, config=config)
            carts[user_id] = cart
            while len(carts) > max(config.max_cart_mirrors, 1):
                evicted, _ = carts.popitem(last=False)
                logger.info("Evicted cart mirror user_id=%s", evicted)
            logger.info("Created cart mirror user_id=%s (active=%s)", user_id, len(carts))
        else:
            carts.move_to_end(user_id)
    if refresh or not cart.loaded:
        cart.refresh()
    return cart


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def _product_summary(view: ProductView) -> ProductSummary:
    product = view.product
    data = product.model_dump(exclude={"date", "description", "inventory_type"})
    return ProductSummary(
        **data,
        date=product.date.isoformat() if product.date else None,
        in_cart=view.in_cart,
    )


def _cart_response(cart: CartReconciler, message: Optional[str] = None) -> CartResponse:
    items = []
    for item in cart.items:
        product = item.product or {}
        items.append(CartItemModel(
            product_id=item.product_id,
            quantity=item.quantity,
            line_id=item.line_id,
            product_name=product.get("product_name"),
            sku=product.get("sku"),
            thumbnail=product.get("thumbnail"),
        ))
    return CartResponse(
        user_id=cart.user_id,
        items=items,
        count=cart.count,
        total_items=cart.total_items,
        message=message,
    )


def _raise_for(result: CartResult) -> None:
    if result.ok:
        return
    raise HTTPException(
        status_code=CONFLICT_STATUS.get(result.conflict, 502),
        detail={"conflict": result.conflict.value, "message": result.message},
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
def health(config: StorefrontConfig = Depends(get_settings)):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=__version__,
        environment=config.environment,
        active_carts=len(carts),
    )


@app.get("/product-category/{slug}", response_model=CatalogResponse)
def product_category(
    slug: str,
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    config: StorefrontConfig = Depends(get_settings),
    products=Depends(get_products),
    cart_store=Depends(get_carts),
    audit=Depends(get_audit),
):
    """
    Catalog listing for a category slug (or `alldevices`).

    Filters come from the query string; products are annotated with cart
    membership when the request carries a user id.
    """
    controller = CatalogController(products, audit=audit, config=config)
    cart = None
    if x_user_id:
        # Listings always re-read the backend cart
        cart = get_or_create_cart(x_user_id, cart_store, audit, config, refresh=True)
    page = controller.browse(slug, request.query_params.multi_items(), cart=cart)
    return CatalogResponse(
        slug=slug,
        selection=page.selection.as_dict(),
        active_filters=page.active_count,
        facets=page.facets.as_dict(),
        products=[_product_summary(view) for view in page.products],
        fetched_count=page.fetched_count,
        error=page.error,
        empty_message=page.empty_message,
    )


@app.post("/product-category/{slug}/filters", response_model=NavigationResponse)
def apply_filter_selection(
    slug: str,
    body: FilterNavigationRequest,
    config: StorefrontConfig = Depends(get_settings),
    products=Depends(get_products),
):
    """Turn a new filter selection into a history-replacing navigation."""
    unknown = sorted(set(body.selection) - set(DIMENSIONS_BY_KEY))
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown filter dimensions: {', '.join(unknown)}")
    controller = CatalogController(products, config=config)
    selection = FilterSelection.from_mapping(body.selection)
    navigation = controller.navigate(f"/product-category/{slug}", selection, body.query)
    return NavigationResponse(url=navigation.url, replace=navigation.replace, scroll=navigation.scroll)


@app.get("/facets", response_model=FacetsResponse)
def facets(
    context: str = ENTRY,
    config: StorefrontConfig = Depends(get_settings),
    products=Depends(get_products),
):
    """Facet values from the dedicated distinct-value query."""
    if context not in (BROWSE, ENTRY):
        raise HTTPException(status_code=422, detail=f"context must be '{BROWSE}' or '{ENTRY}'")
    controller = CatalogController(products, config=config)
    catalog = controller.entry_facets() if context == ENTRY else controller.browse_facets()
    return FacetsResponse(context=catalog.context, facets=catalog.as_dict())


@app.get("/cart", response_model=CartResponse)
def get_cart(
    user_id: str = Depends(require_user),
    config: StorefrontConfig = Depends(get_settings),
    cart_store=Depends(get_carts),
    audit=Depends(get_audit),
):
    cart = get_or_create_cart(user_id, cart_store, audit, config, refresh=True)
    return _cart_response(cart)


@app.post("/cart/items", response_model=CartResponse, status_code=201)
def add_cart_item(
    body: AddToCartRequest,
    user_id: str = Depends(require_user),
    config: StorefrontConfig = Depends(get_settings),
    cart_store=Depends(get_carts),
    audit=Depends(get_audit),
):
    cart = get_or_create_cart(user_id, cart_store, audit, config)
    result = cart.add(body.product_id, body.quantity)
    _raise_for(result)
    return _cart_response(cart, result.message)


@app.patch("/cart/items/{product_id}", response_model=CartResponse)
def update_cart_item(
    product_id: str,
    body: UpdateQuantityRequest,
    user_id: str = Depends(require_user),
    config: StorefrontConfig = Depends(get_settings),
    cart_store=Depends(get_carts),
    audit=Depends(get_audit),
):
    cart = get_or_create_cart(user_id, cart_store, audit, config)
    result = cart.update_quantity(product_id, body.quantity)
    _raise_for(result)
    return _cart_response(cart, result.message)


@app.delete("/cart/items/{product_id}", response_model=CartResponse)
def remove_cart_item(
    product_id: str,
    user_id: str = Depends(require_user),
    config: StorefrontConfig = Depends(get_settings),
    cart_store=Depends(get_carts),
    audit=Depends(get_audit),
):
    cart = get_or_create_cart(user_id, cart_store, audit, config)
    result = cart.remove(product_id)
    _raise_for(result)
    return _cart_response(cart, result.message)


@app.delete("/cart", response_model=CartResponse)
def clear_cart(
    user_id: str = Depends(require_user),
    config: StorefrontConfig = Depends(get_settings),
    cart_store=Depends(get_carts),
    audit=Depends(get_audit),
):
    cart = get_or_create_cart(user_id, cart_store, audit, config)
    result = cart.clear()
    _raise_for(result)
    return _cart_response(cart, result.message)


@app.delete("/cart/session")
def drop_cart_mirror(user_id: str = Depends(require_user)):
    """Drop the server-side cart mirror (e.g. on sign-out). Backend cart lines are untouched."""
    with carts_lock:
        cart = carts.pop(user_id, None)
    if cart is None:
        raise HTTPException(status_code=404, detail="No cart session")
    logger.info("Dropped cart mirror user_id=%s (active=%s)", user_id, len(carts))
    return {"status": "deleted", "user_id": user_id}


if __name__ == "__main__":
    import uvicorn

    configure_logging()

    uvicorn.run(app, host="0.0.0.0", port=8000)
