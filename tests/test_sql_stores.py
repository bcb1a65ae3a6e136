"""
Tests for the DATABASE_URL (SQLAlchemy) stores against in-memory SQLite.

SQLite stands in for Postgres: uniqueness and foreign-key failures are
mapped onto the same SQLSTATE codes (23505 / 23503) the cart relies on.
"""

import json

import pytest
from sqlalchemy import text

from storefront.cart.store import _SQLAlchemyCartStore
from storefront.data.product_store import Predicate, ProductQuery, TextSearch, _SQLAlchemyProductStore
from storefront.data.sql_engine import create_store_engine, quote_ident, sqlstate_of
from storefront.errors import CartMutationError, ProductQueryError
from storefront.utils.audit import AuditEvent, _SQLAlchemyAuditRecorder

SCHEMA = [
    """
    CREATE TABLE products (
        id TEXT PRIMARY KEY,
        slug TEXT,
        product_name TEXT,
        sku TEXT,
        form_factor TEXT,
        processor TEXT,
        memory TEXT,
        storage TEXT,
        screen_size TEXT,
        technologies TEXT,
        copilot BOOLEAN,
        "five_g_Enabled" BOOLEAN,
        total_inventory INTEGER,
        stock_quantity INTEGER,
        post_status TEXT,
        inventory_type TEXT,
        thumbnail TEXT,
        gallery TEXT,
        date TEXT,
        created_at TEXT
    )
    """,
    """
    CREATE TABLE cart (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        product_id TEXT NOT NULL REFERENCES products(id),
        quantity TEXT NOT NULL,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, product_id)
    )
    """,
    """
    CREATE TABLE logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT, level TEXT, action TEXT, message TEXT,
        user_id TEXT, product_id TEXT, details TEXT, status TEXT,
        environment TEXT, execution_time_ms INTEGER, source TEXT, created_at TEXT
    )
    """,
]

PRODUCTS = [
    {"id": "p1", "product_name": "Surface Laptop 7", "sku": "SL7-16-512", "form_factor": "Laptop",
     "memory": "16GB", "processor": "Snapdragon X Elite", "stock_quantity": 5, "date": "2024-06-01"},
    {"id": "p2", "product_name": "Surface Pro 11", "sku": "SP11-16-256", "form_factor": "Tablet",
     "memory": "16GB", "processor": "Snapdragon X Plus", "stock_quantity": 0, "date": "2024-07-01"},
    {"id": "p3", "product_name": "ThinkPad X1", "sku": "TP-X1_100%", "form_factor": "Laptop",
     "memory": "32GB", "processor": "", "stock_quantity": 2, "date": None},
]


@pytest.fixture
def engine():
    eng = create_store_engine("sqlite://")
    with eng.begin() as conn:
        for ddl in SCHEMA:
            conn.execute(text(ddl))
        for row in PRODUCTS:
            conn.execute(
                text("INSERT INTO products (id, product_name, sku, form_factor, memory, processor, "
                     "stock_quantity, date) VALUES (:id, :product_name, :sku, :form_factor, :memory, "
                     ":processor, :stock_quantity, :date)"),
                row,
            )
    yield eng
    eng.dispose()


# ── Engine helpers ───────────────────────────────────────────────────────

class TestEngineHelpers:
    def test_quote_ident(self):
        assert quote_ident("five_g_Enabled") == '"five_g_Enabled"'
        assert quote_ident('a"b') == '"a""b"'

    def test_sqlstate_from_pgcode(self):
        class Orig(Exception):
            pgcode = "23505"

        class Wrapped(Exception):
            orig = Orig("dup")

        assert sqlstate_of(Wrapped()) == "23505"

    def test_sqlstate_unknown(self):
        assert sqlstate_of(Exception("disk I/O error")) is None


# ── Product store ────────────────────────────────────────────────────────

class TestSQLAlchemyProductStore:
    def test_eq_predicate(self, engine):
        store = _SQLAlchemyProductStore(engine=engine)
        rows = store.query_products(ProductQuery(predicates=(Predicate.for_values("form_factor", ["Laptop"]),)))
        # Newest first, undated last
        assert [r["id"] for r in rows] == ["p1", "p3"]

    def test_in_predicate(self, engine):
        store = _SQLAlchemyProductStore(engine=engine)
        query = ProductQuery(predicates=(Predicate.for_values("memory", ["16GB", "32GB"]),))
        assert [r["id"] for r in store.query_products(query)] == ["p2", "p1", "p3"]

    def test_text_search_name_or_sku_case_insensitive(self, engine):
        store = _SQLAlchemyProductStore(engine=engine)
        assert [r["id"] for r in store.query_products(ProductQuery(search=TextSearch("SURFACE")))] == ["p2", "p1"]
        assert [r["id"] for r in store.query_products(ProductQuery(search=TextSearch("sp11")))] == ["p2"]

    def test_text_search_escapes_wildcards(self, engine):
        store = _SQLAlchemyProductStore(engine=engine)
        assert [r["id"] for r in store.query_products(ProductQuery(search=TextSearch("_100%")))] == ["p3"]
        # "_" is literal: "l_p" must not match "laptop"
        assert store.query_products(ProductQuery(search=TextSearch("l_p"))) == []

    def test_distinct_values_skip_null_and_empty(self, engine):
        store = _SQLAlchemyProductStore(engine=engine)
        assert sorted(store.distinct_values("processor")) == ["Snapdragon X Elite", "Snapdragon X Plus"]

    def test_missing_table_raises_query_error(self, engine):
        store = _SQLAlchemyProductStore(engine=engine, table="no_such_table")
        with pytest.raises(ProductQueryError):
            store.query_products(ProductQuery())


# ── Cart store ───────────────────────────────────────────────────────────

class TestSQLAlchemyCartStore:
    def test_insert_and_list_with_product(self, engine):
        store = _SQLAlchemyCartStore(engine=engine)
        store.insert_line("u1", "p1", 2)
        store.insert_line("u1", "p2", 1)
        lines = store.list_lines("u1")
        assert {l["product_id"]: l["quantity"] for l in lines} == {"p1": "2", "p2": "1"}
        by_product = {l["product_id"]: l for l in lines}
        assert by_product["p1"]["product"]["product_name"] == "Surface Laptop 7"
        assert store.list_lines("u2") == []

    def test_duplicate_is_unique_violation(self, engine):
        store = _SQLAlchemyCartStore(engine=engine)
        store.insert_line("u1", "p1", 1)
        with pytest.raises(CartMutationError) as excinfo:
            store.insert_line("u1", "p1", 1)
        assert excinfo.value.code == "23505"

    def test_unknown_product_is_foreign_key_violation(self, engine):
        store = _SQLAlchemyCartStore(engine=engine)
        with pytest.raises(CartMutationError) as excinfo:
            store.insert_line("u1", "ghost", 1)
        assert excinfo.value.code == "23503"

    def test_update_delete_and_delete_all(self, engine):
        store = _SQLAlchemyCartStore(engine=engine)
        store.insert_line("u1", "p1", 1)
        store.insert_line("u1", "p2", 1)
        store.insert_line("u2", "p1", 1)
        store.update_line("u1", "p1", 5)
        assert {l["product_id"]: l["quantity"] for l in store.list_lines("u1")}["p1"] == "5"
        store.delete_line("u1", "p1")
        store.delete_line("u1", "p1")
        assert [l["product_id"] for l in store.list_lines("u1")] == ["p2"]
        store.delete_all("u1")
        assert store.list_lines("u1") == []
        assert len(store.list_lines("u2")) == 1


# ── Audit recorder ───────────────────────────────────────────────────────

class TestSQLAlchemyAuditRecorder:
    def test_record(self, engine):
        recorder = _SQLAlchemyAuditRecorder(engine=engine, environment="test")
        event = AuditEvent(type="cart", level="success", action="add_to_cart_success",
                           message="Product added to cart", user_id="u1", product_id="p1",
                           details={"quantity": 1})
        assert recorder.record(event) is True
        with engine.connect() as conn:
            row = conn.execute(text("SELECT action, environment, details FROM logs")).one()
        assert row.action == "add_to_cart_success"
        assert row.environment == "test"
        assert json.loads(row.details) == {"quantity": 1}

    def test_failure_is_swallowed(self, engine):
        recorder = _SQLAlchemyAuditRecorder(engine=engine, table="missing_logs")
        event = AuditEvent(type="cart", level="info", action="x", message="x")
        assert recorder.record(event) is False
