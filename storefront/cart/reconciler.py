"""
Local mirror of one user's cart with conflict-classified mutations.

The reconciler holds the product ids currently in the cart, answers
membership without a backend round-trip, and applies add/remove/clear
against the cart store. One line per (user, product): adding a product
that is already present is a conflict, never a quantity increment.

Mutations are serialized per reconciler. A mutation that arrives while
another is in flight is rejected with CartConflict.BUSY instead of being
queued, the same outcome as a disabled add-to-cart control.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from storefront.catalog.models import Product
from storefront.core.config import StorefrontConfig, get_config
from storefront.data.legacy_fields import parse_quantity
from storefront.errors import BackendError
from storefront.utils.audit import ERROR, INFO, SUCCESS, AuditEvent, elapsed_ms
from storefront.utils.logger import get_logger

logger = get_logger("cart.reconciler")


class CartConflict(str, Enum):
    ALREADY_IN_CART = "already_in_cart"
    PRODUCT_NOT_FOUND = "product_not_found"
    INVALID_PRODUCT = "invalid_product"
    FAILED = "failed"
    BUSY = "busy"


ADD_MESSAGES = {
    CartConflict.ALREADY_IN_CART: "This product is already in your cart.",
    CartConflict.PRODUCT_NOT_FOUND: "Product not found.",
    CartConflict.INVALID_PRODUCT: "Invalid product. Please refresh the page and try again.",
    CartConflict.FAILED: "Failed to add product to cart. Please try again.",
    CartConflict.BUSY: "Another cart update is in progress. Please wait.",
}

REMOVE_FAILED = "Failed to remove product from cart. Please try again."
CLEAR_FAILED = "Failed to clear cart. Please try again."
UPDATE_FAILED = "Failed to update quantity. Please try again."


@dataclass
class CartResult:
    ok: bool
    conflict: Optional[CartConflict] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, message: Optional[str] = None) -> "CartResult":
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, conflict: CartConflict, message: Optional[str] = None) -> "CartResult":
        return cls(ok=False, conflict=conflict, message=message or ADD_MESSAGES[conflict])


@dataclass
class CartItem:
    product_id: str
    quantity: int = 1
    line_id: Optional[str] = None
    product: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CartItem":
        line_id = row.get("id")
        return cls(
            product_id=str(row.get("product_id")),
            # Legacy writers store quantity as text; unreadable means zero
            quantity=parse_quantity(row.get("quantity"), default=0),
            line_id=str(line_id) if line_id is not None else None,
            product=row.get("product"),
        )


def classify_add_error(error: BackendError, config: StorefrontConfig) -> CartConflict:
    """Map a backend add-to-cart failure onto a CartConflict."""
    if error.code == config.unique_violation_code:
        return CartConflict.ALREADY_IN_CART
    if error.code == config.foreign_key_violation_code:
        return CartConflict.PRODUCT_NOT_FOUND
    if "foreign key constraint" in (error.message or "").lower():
        return CartConflict.INVALID_PRODUCT
    return CartConflict.FAILED


class CartReconciler:
    """Cart membership for a single signed-in user."""

    def __init__(self, store, user_id: str, audit=None, config: Optional[StorefrontConfig] = None):
        self.store = store
        self.user_id = user_id
        self.audit = audit
        self.config = config or get_config()
        self._items: "OrderedDict[str, CartItem]" = OrderedDict()
        self._lock = threading.Lock()
        self.loaded = False

    # -- read path ---------------------------------------------------------

    def refresh(self) -> bool:
        """Reload the mirror from the store. On failure the previous mirror is kept."""
        try:
            rows = self.store.list_lines(self.user_id)
        except BackendError as e:
            logger.error("cart: method=refresh user_id=%s result=error error=%s", self.user_id, e)
            return False
        items: "OrderedDict[str, CartItem]" = OrderedDict()
        for row in rows:
            item = CartItem.from_row(row)
            items.setdefault(item.product_id, item)
        self._items = items
        self.loaded = True
        return True

    def is_in_cart(self, product_id: str) -> bool:
        return str(product_id) in self._items

    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    @property
    def count(self) -> int:
        return len(self._items)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self._items.values())

    def annotate(self, products: Iterable[Product]) -> List[Tuple[Product, bool]]:
        return [(product, self.is_in_cart(product.id)) for product in products]

    # -- mutations ---------------------------------------------------------

    def add(self, product_id: str, quantity: int = 1) -> CartResult:
        if quantity < 1:
            raise ValueError("quantity must be a positive integer")
        product_id = str(product_id)
        if not self._lock.acquire(blocking=False):
            return CartResult.failure(CartConflict.BUSY)
        try:
            return self._add(product_id, quantity)
        finally:
            self._lock.release()

    def _add(self, product_id: str, quantity: int) -> CartResult:
        started = time.monotonic()
        self._audit("add_to_cart_attempt", INFO, "Attempting to add product to cart",
                    product_id, {"quantity": quantity}, status="pending")
        if self.is_in_cart(product_id):
            result = CartResult.failure(CartConflict.ALREADY_IN_CART)
            self._audit("add_to_cart_failed", ERROR, result.message, product_id,
                        {"reason": result.conflict.value}, status="failed", started=started)
            return result
        try:
            row = self.store.insert_line(self.user_id, product_id, quantity)
        except BackendError as e:
            conflict = classify_add_error(e, self.config)
            logger.warning("cart: method=add user_id=%s product_id=%s conflict=%s code=%s",
                           self.user_id, product_id, conflict.value, e.code)
            result = CartResult.failure(conflict)
            self._audit("add_to_cart_failed", ERROR, result.message, product_id,
                        {"reason": conflict.value, "error_code": e.code, "error": e.message},
                        status="failed", started=started)
            return result

        item = CartItem.from_row(row or {})
        item.product_id = product_id
        item.quantity = quantity
        self._items[product_id] = item
        self._audit("add_to_cart_success", SUCCESS, "Product added to cart", product_id,
                    {"quantity": quantity}, started=started)
        self.refresh()
        return CartResult.success("Product added to cart.")

    def remove(self, product_id: str) -> CartResult:
        product_id = str(product_id)
        if not self._lock.acquire(blocking=False):
            return CartResult.failure(CartConflict.BUSY)
        try:
            started = time.monotonic()
            self._audit("remove_from_cart_attempt", INFO, "Attempting to remove product from cart",
                        product_id, {}, status="pending")
            try:
                self.store.delete_line(self.user_id, product_id)
            except BackendError as e:
                if e.code == self.config.no_rows_code:
                    # Line already gone
                    logger.info("cart: method=remove user_id=%s product_id=%s already_gone=true",
                                self.user_id, product_id)
                else:
                    logger.warning("cart: method=remove user_id=%s product_id=%s code=%s",
                                   self.user_id, product_id, e.code)
                    self._audit("remove_from_cart_failed", ERROR, REMOVE_FAILED, product_id,
                                {"error_code": e.code, "error": e.message}, status="failed", started=started)
                    return CartResult.failure(CartConflict.FAILED, REMOVE_FAILED)
            self._items.pop(product_id, None)
            self._audit("remove_from_cart_success", SUCCESS, "Product removed from cart",
                        product_id, {}, started=started)
            self.refresh()
            return CartResult.success("Product removed from cart.")
        finally:
            self._lock.release()

    def clear(self) -> CartResult:
        if not self._lock.acquire(blocking=False):
            return CartResult.failure(CartConflict.BUSY)
        try:
            started = time.monotonic()
            count = self.count
            self._audit("clear_cart_attempt", INFO, "Attempting to clear cart", None,
                        {"item_count": count}, status="pending")
            try:
                self.store.delete_all(self.user_id)
            except BackendError as e:
                logger.warning("cart: method=clear user_id=%s code=%s", self.user_id, e.code)
                self._audit("clear_cart_failed", ERROR, CLEAR_FAILED, None,
                            {"error_code": e.code, "error": e.message}, status="failed", started=started)
                return CartResult.failure(CartConflict.FAILED, CLEAR_FAILED)
            self._items.clear()
            self._audit("clear_cart_success", SUCCESS, "Cart cleared", None,
                        {"item_count": count}, started=started)
            self.refresh()
            return CartResult.success("Cart cleared.")
        finally:
            self._lock.release()

    def update_quantity(self, product_id: str, quantity: int) -> CartResult:
        """Set the quantity of an existing line."""
        if quantity < 1:
            raise ValueError("quantity must be a positive integer")
        product_id = str(product_id)
        if not self._lock.acquire(blocking=False):
            return CartResult.failure(CartConflict.BUSY)
        try:
            if not self.is_in_cart(product_id):
                return CartResult.failure(CartConflict.PRODUCT_NOT_FOUND)
            try:
                self.store.update_line(self.user_id, product_id, quantity)
            except BackendError as e:
                logger.warning("cart: method=update_quantity user_id=%s product_id=%s code=%s",
                               self.user_id, product_id, e.code)
                self._audit("update_cart_quantity_failed", ERROR, UPDATE_FAILED, product_id,
                            {"quantity": quantity, "error_code": e.code}, status="failed")
                return CartResult.failure(CartConflict.FAILED, UPDATE_FAILED)
            self._items[product_id].quantity = quantity
            self._audit("update_cart_quantity_success", SUCCESS, "Cart quantity updated",
                        product_id, {"quantity": quantity})
            return CartResult.success("Quantity updated.")
        finally:
            self._lock.release()

    # -- audit -------------------------------------------------------------

    def _audit(
        self,
        action: str,
        level: str,
        message: str,
        product_id: Optional[str],
        details: Dict[str, Any],
        status: str = "completed",
        started: Optional[float] = None,
    ) -> None:
        if self.audit is None:
            return
        event = AuditEvent(
            type="cart",
            level=level,
            action=action,
            message=message,
            user_id=self.user_id,
            product_id=product_id,
            details=details,
            status=status,
            execution_time_ms=elapsed_ms(started) if started is not None else None,
        )
        try:
            self.audit.record(event)
        except Exception as e:
            # Never let auditing block or reverse the cart mutation
            logger.warning("cart: audit action=%s result=error error=%s", action, e)
