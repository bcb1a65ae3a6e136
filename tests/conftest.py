"""Pytest configuration for storefront tests."""

from typing import Any, Dict, List, Optional

import pytest

from storefront.core.config import StorefrontConfig, set_config
from storefront.errors import CartMutationError, ProductQueryError


# ---------------------------------------------------------------------------
# Config isolation: every test runs against the built-in defaults, never the
# developer's config/default.yaml overrides or a previous test's config.
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def config():
    cfg = StorefrontConfig()
    set_config(cfg)
    yield cfg
    set_config(None)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

def product_row(pid: str, **overrides) -> Dict[str, Any]:
    """A products-table row with sensible defaults."""
    row = {
        "id": pid,
        "slug": f"product-{pid}",
        "product_name": f"Product {pid}",
        "sku": f"SKU-{pid}",
        "form_factor": "Laptop",
        "processor": "Intel Core i5",
        "memory": "16GB",
        "storage": "512GB",
        "screen_size": "13.5\"",
        "technologies": '["Windows 11"]',
        "copilot": False,
        "five_g_Enabled": False,
        "total_inventory": 10,
        "stock_quantity": 5,
        "post_status": "Publish",
        "thumbnail": None,
        "gallery": None,
        "date": "2024-01-01T00:00:00Z",
    }
    row.update(overrides)
    return row


class FakeProductStore:
    """Records queries and returns canned rows (optionally failing)."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, fail: bool = False):
        self.rows = list(rows or [])
        self.fail = fail
        self.queries = []

    def query_products(self, query):
        self.queries.append(query)
        if self.fail:
            raise ProductQueryError("connection reset", code="08006")
        return list(self.rows)

    def distinct_values(self, column):
        if self.fail:
            raise ProductQueryError("connection reset", code="08006")
        return [row.get(column) for row in self.rows if row.get(column) not in (None, "")]


class FakeCartStore:
    """Cart lines with the backend's uniqueness and foreign-key behavior."""

    def __init__(self, known_products: Optional[List[str]] = None):
        self.lines: List[Dict[str, Any]] = []
        self.known_products = set(known_products) if known_products is not None else None
        self.fail_with: Optional[CartMutationError] = None
        self.calls: List[str] = []
        self._next_id = 1

    def _check_failure(self):
        if self.fail_with is not None:
            raise self.fail_with

    def list_lines(self, user_id):
        self.calls.append("list_lines")
        return [dict(line) for line in self.lines if line["user_id"] == user_id]

    def insert_line(self, user_id, product_id, quantity):
        self.calls.append("insert_line")
        self._check_failure()
        if any(l["user_id"] == user_id and l["product_id"] == product_id for l in self.lines):
            raise CartMutationError(
                'duplicate key value violates unique constraint "cart_user_id_product_id_key"',
                code="23505",
            )
        if self.known_products is not None and product_id not in self.known_products:
            raise CartMutationError(
                'insert or update on table "cart" violates foreign key constraint "cart_product_id_fkey"',
                code="23503",
            )
        line = {"id": str(self._next_id), "user_id": user_id, "product_id": product_id,
                "quantity": str(quantity)}
        self._next_id += 1
        self.lines.append(line)
        return dict(line)

    def update_line(self, user_id, product_id, quantity):
        self.calls.append("update_line")
        self._check_failure()
        for line in self.lines:
            if line["user_id"] == user_id and line["product_id"] == product_id:
                line["quantity"] = str(quantity)

    def delete_line(self, user_id, product_id):
        self.calls.append("delete_line")
        self._check_failure()
        self.lines = [l for l in self.lines
                      if not (l["user_id"] == user_id and l["product_id"] == product_id)]

    def delete_all(self, user_id):
        self.calls.append("delete_all")
        self._check_failure()
        self.lines = [l for l in self.lines if l["user_id"] != user_id]


class RecordingAudit:
    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    def record(self, event):
        if self.fail:
            raise RuntimeError("logs table unavailable")
        self.events.append(event)
        return True

    @property
    def actions(self) -> List[str]:
        return [e.action for e in self.events]


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def cart_store():
    return FakeCartStore()
