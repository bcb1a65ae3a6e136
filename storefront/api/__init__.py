"""
API module for the storefront.

Provides REST endpoints for catalog pages, facets and the cart.
"""
from storefront.api.models import (
    CatalogResponse,
    CartResponse,
    FacetsResponse,
    NavigationResponse,
)

__all__ = [
    "CatalogResponse",
    "CartResponse",
    "FacetsResponse",
    "NavigationResponse",
]
