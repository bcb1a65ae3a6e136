"""
Pydantic models for the storefront API requests and responses.
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, List


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    version: str
    environment: str
    active_carts: int


class ProductSummary(BaseModel):
    """One catalog card."""
    id: str
    slug: Optional[str] = None
    name: str
    sku: Optional[str] = None
    form_factor: Optional[str] = None
    processor: Optional[str] = None
    memory: Optional[str] = None
    storage: Optional[str] = None
    screen_size: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    copilot: bool = False
    five_g_enabled: bool = False
    stock_quantity: int = 0
    total_inventory: int = 0
    post_status: Optional[str] = None
    thumbnail: Optional[str] = None
    gallery: List[str] = Field(default_factory=list)
    date: Optional[str] = None
    in_cart: bool = Field(default=False, description="Whether the requesting user has this product in their cart")


class CatalogResponse(BaseModel):
    """Response model for a catalog page."""
    slug: str
    selection: Dict[str, List[str]] = Field(description="Active filter values per dimension")
    active_filters: int = Field(default=0, description="Number of selected filter values")
    facets: Dict[str, List[str]] = Field(description="Selectable values per dimension")
    products: List[ProductSummary] = Field(default_factory=list)
    fetched_count: int = Field(default=0, description="Products returned by the backend before residual filtering")
    error: Optional[str] = Field(default=None, description="Set when products could not be loaded")
    empty_message: Optional[str] = Field(default=None, description="Copy for an empty, error-free listing")


class FilterNavigationRequest(BaseModel):
    """New filter selection for a catalog page."""
    selection: Dict[str, List[str]] = Field(default_factory=dict, description="Dimension key -> selected values")
    query: str = Field(default="", description="Current query string; non-filter params are preserved")


class NavigationResponse(BaseModel):
    url: str
    replace: bool = True
    scroll: bool = False


class FacetsResponse(BaseModel):
    context: str
    facets: Dict[str, List[str]]


class CartItemModel(BaseModel):
    product_id: str
    quantity: int
    line_id: Optional[str] = None
    product_name: Optional[str] = None
    sku: Optional[str] = None
    thumbnail: Optional[str] = None


class CartResponse(BaseModel):
    """Response model for the cart endpoints."""
    user_id: str
    items: List[CartItemModel] = Field(default_factory=list)
    count: int = Field(default=0, description="Number of distinct products")
    total_items: int = Field(default=0, description="Sum of quantities")
    message: Optional[str] = None


class AddToCartRequest(BaseModel):
    product_id: str = Field(description="Product to add")
    quantity: int = Field(default=1, ge=1, description="Positive quantity")


class UpdateQuantityRequest(BaseModel):
    quantity: int = Field(ge=1, description="New positive quantity")
