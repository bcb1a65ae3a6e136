"""
Display order for catalog listings.

Published products come first, then products with stock, then the most
recently listed. The sort is stable, so equal keys keep arrival order.
"""
from typing import Iterable, List, Optional

from storefront.catalog.models import Product
from storefront.core.config import StorefrontConfig, get_config


def order_products(products: Iterable[Product], config: Optional[StorefrontConfig] = None) -> List[Product]:
    config = config or get_config()

    def sort_key(product: Product):
        return (
            0 if product.is_published(config.published_status) else 1,
            0 if product.in_stock else 1,
            -product.listed_timestamp(),
        )

    return sorted(products, key=sort_key)
