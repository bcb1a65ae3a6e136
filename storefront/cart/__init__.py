"""
Cart lines and the per-user cart membership mirror.
"""
from storefront.cart.reconciler import CartConflict, CartReconciler, CartResult

__all__ = [
    "CartConflict",
    "CartReconciler",
    "CartResult",
]
