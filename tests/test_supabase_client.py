"""
Tests for the PostgREST client and the REST-backed product, cart and audit
stores. Requests are served by httpx.MockTransport; nothing leaves the process.
"""

import json

import httpx
import pytest

from storefront.cart.store import SupabaseCartStore
from storefront.data.product_store import Predicate, ProductQuery, SupabaseProductStore, TextSearch
from storefront.errors import BackendError, CartMutationError, ProductQueryError
from storefront.utils.audit import AuditEvent, AuditRecorder
from storefront.utils.supabase_client import SupabaseClient, in_filter, quote_value

BASE_URL = "https://project.supabase.co"


def _client(handler):
    return SupabaseClient(url=BASE_URL, key="service-key", transport=httpx.MockTransport(handler))


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else []
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body == b"":
            return httpx.Response(self.status)
        return httpx.Response(self.status, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


# ── Client ───────────────────────────────────────────────────────────────

class TestSupabaseClient:
    def test_auth_headers_and_path(self):
        handler = Recorder(body=[{"id": "1"}])
        rows = _client(handler).select("products", [("form_factor", "eq.Laptop")])
        assert rows == [{"id": "1"}]
        assert handler.last.url.path == "/rest/v1/products"
        assert handler.last.headers["apikey"] == "service-key"
        assert handler.last.headers["Authorization"] == "Bearer service-key"
        assert handler.last.url.params["select"] == "*"
        assert handler.last.url.params["form_factor"] == "eq.Laptop"

    def test_error_body_becomes_backend_error(self):
        handler = Recorder(status=409, body={
            "code": "23505",
            "message": 'duplicate key value violates unique constraint "cart_user_id_product_id_key"',
            "details": "Key (user_id, product_id)=(u, p) already exists.",
            "hint": None,
        })
        with pytest.raises(BackendError) as excinfo:
            _client(handler).insert("cart", {"user_id": "u"})
        assert excinfo.value.code == "23505"
        assert excinfo.value.status_code == 409
        assert "duplicate key" in excinfo.value.message

    def test_transport_error_becomes_backend_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError) as excinfo:
            _client(handler).select("products")
        assert excinfo.value.code is None

    def test_empty_response_body(self):
        handler = Recorder(status=204, body=b"")
        assert _client(handler).delete("cart", [("user_id", "eq.u")]) == []

    def test_quoting(self):
        assert quote_value('13.5"') == '"13.5\\""'
        assert in_filter(["Laptop", "2-in-1, Tablet"]) == 'in.("Laptop","2-in-1, Tablet")'


# ── Product store ────────────────────────────────────────────────────────

class TestSupabaseProductStore:
    def test_build_params(self):
        query = ProductQuery(
            predicates=(
                Predicate.for_values("form_factor", ["Laptop"]),
                Predicate.for_values("memory", ["16GB", "32GB"]),
            ),
        )
        assert SupabaseProductStore.build_params(query) == [
            ("form_factor", "eq.Laptop"),
            ("memory", 'in.("16GB","32GB")'),
        ]

    def test_text_search_params(self):
        params = SupabaseProductStore.build_params(ProductQuery(search=TextSearch("surface")))
        assert params == [("or", '(product_name.ilike."*surface*",sku.ilike."*surface*")')]

    def test_unknown_column_rejected(self):
        with pytest.raises(ValueError):
            SupabaseProductStore.build_params(ProductQuery(predicates=(Predicate.for_values("price; drop", ["1"]),)))

    def test_query_products_orders_newest_first(self):
        handler = Recorder(body=[{"id": "1"}])
        store = SupabaseProductStore(client=_client(handler))
        rows = store.query_products(ProductQuery(predicates=(Predicate.for_values("form_factor", ["Laptop"]),)))
        assert rows == [{"id": "1"}]
        assert handler.last.url.params["order"] == "date.desc.nullslast"
        assert handler.last.url.params["form_factor"] == "eq.Laptop"

    def test_query_error(self):
        handler = Recorder(status=400, body={"code": "42703", "message": "column products.colour does not exist"})
        store = SupabaseProductStore(client=_client(handler))
        with pytest.raises(ProductQueryError) as excinfo:
            store.query_products(ProductQuery())
        assert excinfo.value.code == "42703"

    def test_distinct_values(self):
        handler = Recorder(body=[{"processor": "Intel Core i5"}, {"processor": None}, {"processor": "AMD"}])
        store = SupabaseProductStore(client=_client(handler))
        assert store.distinct_values("processor") == ["Intel Core i5", "AMD"]
        assert handler.last.url.params["select"] == "processor"
        assert handler.last.url.params.get_list("processor") == ["not.is.null", "neq."]


# ── Cart store ───────────────────────────────────────────────────────────

class TestSupabaseCartStore:
    def test_insert_line_sends_text_quantity(self):
        handler = Recorder(status=201, body=[{"id": "c1", "user_id": "u", "product_id": "p", "quantity": "2"}])
        store = SupabaseCartStore(client=_client(handler))
        row = store.insert_line("u", "p", 2)
        assert row["id"] == "c1"
        assert handler.last.method == "POST"
        assert json.loads(handler.last.content) == {"user_id": "u", "product_id": "p", "quantity": "2"}

    def test_insert_conflict_carries_code(self):
        handler = Recorder(status=409, body={"code": "23505", "message": "duplicate key"})
        store = SupabaseCartStore(client=_client(handler))
        with pytest.raises(CartMutationError) as excinfo:
            store.insert_line("u", "p", 1)
        assert excinfo.value.code == "23505"

    def test_list_lines_embeds_product(self):
        handler = Recorder(body=[])
        SupabaseCartStore(client=_client(handler)).list_lines("u")
        params = handler.last.url.params
        assert params["user_id"] == "eq.u"
        assert params["select"].startswith("*,product:products(")
        assert params["order"] == "created_at.desc"

    def test_delete_line_filters_user_and_product(self):
        handler = Recorder(status=204, body=b"")
        SupabaseCartStore(client=_client(handler)).delete_line("u", "p")
        assert handler.last.method == "DELETE"
        assert handler.last.url.params["user_id"] == "eq.u"
        assert handler.last.url.params["product_id"] == "eq.p"

    def test_delete_all(self):
        handler = Recorder(status=204, body=b"")
        SupabaseCartStore(client=_client(handler)).delete_all("u")
        assert "product_id" not in handler.last.url.params


# ── Audit recorder ───────────────────────────────────────────────────────

class TestAuditRecorder:
    def test_record_inserts_row(self):
        handler = Recorder(status=201, body=[])
        recorder = AuditRecorder(client=_client(handler), environment="test")
        event = AuditEvent(type="cart", level="info", action="add_to_cart_attempt",
                           message="Attempting", user_id="u", product_id="p",
                           details={"quantity": 1, "api_key": "secret"})
        assert recorder.record(event) is True
        body = json.loads(handler.last.content)
        assert handler.last.url.path == "/rest/v1/logs"
        assert body["action"] == "add_to_cart_attempt"
        assert body["environment"] == "test"
        assert body["details"] == {"quantity": 1, "api_key": "[REDACTED]"}
        assert body["created_at"]

    def test_failure_is_swallowed(self):
        handler = Recorder(status=500, body={"message": "logs table missing"})
        recorder = AuditRecorder(client=_client(handler))
        event = AuditEvent(type="cart", level="error", action="add_to_cart_failed", message="x")
        assert recorder.record(event) is False
