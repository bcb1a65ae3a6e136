"""
Storefront - device catalog filtering and cart reconciliation

- Facet derivation and URL-synchronized filter selections
- Server-side predicates with client-side residual filtering
- Cart membership mirror with conflict-classified mutations
"""

from storefront.core.controller import CatalogController, CatalogPage
from storefront.core.config import StorefrontConfig, get_config, set_config

__all__ = [
    'CatalogController',
    'CatalogPage',
    'StorefrontConfig',
    'get_config',
    'set_config',
]

__version__ = '0.1.0'
