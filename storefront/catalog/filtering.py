"""
Client-side (residual) filtering of fetched products.
"""
from typing import Iterable, List, Optional

from storefront.catalog.models import DIMENSIONS, FilterDimension, FilterSelection, Product
from storefront.core.config import StorefrontConfig, get_config


def matches_dimension(
    product: Product,
    dimension: FilterDimension,
    selected: Iterable[str],
    config: StorefrontConfig,
) -> bool:
    selected = set(selected)
    if not selected:
        return True
    value = product.value_for(dimension)
    if dimension.is_flag:
        # Only a "true" selection constrains a flag; "No" means don't care
        if selected.intersection(config.flag_true_values):
            return value is True
        return True
    if value is None:
        return False
    return str(value) in selected


def matches(product: Product, selection: FilterSelection, config: Optional[StorefrontConfig] = None) -> bool:
    config = config or get_config()
    return all(
        matches_dimension(product, dimension, selection.get(dimension.key), config)
        for dimension in DIMENSIONS
    )


def apply_filters(
    products: Iterable[Product],
    selection: FilterSelection,
    config: Optional[StorefrontConfig] = None,
) -> List[Product]:
    """Keep the products that satisfy every non-empty dimension of `selection`."""
    config = config or get_config()
    return [p for p in products if matches(p, selection, config)]
