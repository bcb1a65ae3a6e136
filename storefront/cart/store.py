"""
Supabase cart-line storage for signed-in users.

Cart table schema:
  id uuid PK default gen_random_uuid()
  user_id uuid not null FK auth.users(id) ON DELETE CASCADE
  product_id uuid not null FK products(id)
  quantity text not null          -- legacy writers store the integer as text
  created_at timestamptz default now()
  UNIQUE (user_id, product_id)

One line per (user, product): inserting an existing pair is rejected by the
unique constraint (23505) and a vanished product by the foreign key (23503).
Neither store upserts or increments; the caller classifies the error code.
Prefers DATABASE_URL (SQLAlchemy, bypasses RLS) over SUPABASE_KEY (REST API).
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from storefront.errors import BackendError, CartMutationError
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient, get_supabase_client

logger = get_logger("cart.store")

PRODUCT_EMBED_COLUMNS = ("id", "product_name", "sku", "slug", "thumbnail", "stock_quantity", "post_status")

_cart_store: Optional[Any] = None


def get_cart_store() -> Any:
    """Return the singleton cart store (SQLAlchemy preferred, REST fallback)."""
    global _cart_store
    if _cart_store is not None:
        return _cart_store
    from storefront.core.config import get_config
    config = get_config()
    # Prefer DATABASE_URL (bypasses RLS on the cart table)
    db_url = os.environ.get("DATABASE_URL", "")
    if db_url:
        _cart_store = _SQLAlchemyCartStore(db_url, table=config.cart_table, products_table=config.products_table)
        logger.info("Using SQLAlchemy cart store via DATABASE_URL")
        return _cart_store
    _cart_store = SupabaseCartStore(table=config.cart_table, products_table=config.products_table)
    return _cart_store


def _mutation_error(error: BackendError) -> CartMutationError:
    return CartMutationError(error.message, code=error.code, details=error.details,
                             status_code=error.status_code)


class SupabaseCartStore:
    """
    Cart lines against the Supabase REST API.
    All methods take user_id (UUID string) for the signed-in user and raise
    CartMutationError on failure.
    """

    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        table: str = "cart",
        products_table: str = "products",
    ) -> None:
        self._client = client or get_supabase_client()
        self._table = table
        self._products_table = products_table

    def list_lines(self, user_id: str) -> List[Dict[str, Any]]:
        """Return cart rows for user, newest first, each with an embedded `product`."""
        logger.info("supabase_cart: method=list_lines user_id=%s", user_id)
        select = f"*,product:{self._products_table}({','.join(PRODUCT_EMBED_COLUMNS)})"
        try:
            rows = self._client.select(
                self._table,
                [("user_id", f"eq.{user_id}")],
                select=select,
                order="created_at.desc",
            )
        except BackendError as e:
            logger.error("supabase_cart: method=list_lines user_id=%s result=error error=%s", user_id, e)
            raise _mutation_error(e) from e
        logger.info("supabase_cart: method=list_lines user_id=%s result=success row_count=%s", user_id, len(rows))
        return rows

    def insert_line(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        logger.info("supabase_cart: method=insert_line user_id=%s product_id=%s quantity=%s", user_id, product_id, quantity)
        payload = {"user_id": user_id, "product_id": product_id, "quantity": str(quantity)}
        try:
            rows = self._client.insert(self._table, payload)
        except BackendError as e:
            logger.error("supabase_cart: method=insert_line user_id=%s product_id=%s result=error code=%s error=%s",
                         user_id, product_id, e.code, e)
            raise _mutation_error(e) from e
        logger.info("supabase_cart: method=insert_line user_id=%s product_id=%s result=success", user_id, product_id)
        return rows[0] if rows else payload

    def update_line(self, user_id: str, product_id: str, quantity: int) -> None:
        logger.info("supabase_cart: method=update_line user_id=%s product_id=%s quantity=%s", user_id, product_id, quantity)
        try:
            self._client.update(
                self._table,
                [("user_id", f"eq.{user_id}"), ("product_id", f"eq.{product_id}")],
                {"quantity": str(quantity)},
            )
        except BackendError as e:
            logger.error("supabase_cart: method=update_line user_id=%s product_id=%s result=error error=%s", user_id, product_id, e)
            raise _mutation_error(e) from e

    def delete_line(self, user_id: str, product_id: str) -> None:
        logger.info("supabase_cart: method=delete_line user_id=%s product_id=%s", user_id, product_id)
        try:
            self._client.delete(
                self._table,
                [("user_id", f"eq.{user_id}"), ("product_id", f"eq.{product_id}")],
            )
        except BackendError as e:
            logger.error("supabase_cart: method=delete_line user_id=%s product_id=%s result=error error=%s", user_id, product_id, e)
            raise _mutation_error(e) from e
        logger.info("supabase_cart: method=delete_line user_id=%s product_id=%s result=success", user_id, product_id)

    def delete_all(self, user_id: str) -> None:
        logger.info("supabase_cart: method=delete_all user_id=%s", user_id)
        try:
            self._client.delete(self._table, [("user_id", f"eq.{user_id}")])
        except BackendError as e:
            logger.error("supabase_cart: method=delete_all user_id=%s result=error error=%s", user_id, e)
            raise _mutation_error(e) from e
        logger.info("supabase_cart: method=delete_all user_id=%s result=success", user_id)


# ---------------------------------------------------------------------------
# SQLAlchemy cart store (DATABASE_URL, bypasses RLS)
# ---------------------------------------------------------------------------

class _SQLAlchemyCartStore:
    """
    Cart lines via direct database connection (DATABASE_URL).
    Same public interface as SupabaseCartStore.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        engine=None,
        table: str = "cart",
        products_table: str = "products",
    ) -> None:
        from storefront.data.sql_engine import create_store_engine, quote_ident

        self._engine = engine if engine is not None else create_store_engine(db_url)
        self._table = quote_ident(table)
        self._products = quote_ident(products_table)

    def _execute(self, method: str, sql: str, params: Dict[str, Any], fetch: bool = False) -> List[Any]:
        from sqlalchemy import text as sa_text
        from sqlalchemy.exc import SQLAlchemyError
        from storefront.data.sql_engine import sqlstate_of

        try:
            with self._engine.begin() as conn:
                result = conn.execute(sa_text(sql), params)
                return result.fetchall() if fetch else []
        except SQLAlchemyError as e:
            code = sqlstate_of(e)
            logger.error("sqla_cart: method=%s result=error code=%s error=%s", method, code, e)
            raise CartMutationError(str(getattr(e, "orig", e)), code=code) from e

    def list_lines(self, user_id: str) -> List[Dict[str, Any]]:
        logger.info("sqla_cart: method=list_lines user_id=%s", user_id)
        product_cols = ", ".join(f"p.{col} AS product__{col}" for col in PRODUCT_EMBED_COLUMNS)
        rows = self._execute(
            "list_lines",
            f"SELECT c.id, c.user_id, c.product_id, c.quantity, c.created_at, {product_cols} "
            f"FROM {self._table} c LEFT JOIN {self._products} p ON p.id = c.product_id "
            "WHERE c.user_id = :uid ORDER BY c.created_at DESC",
            {"uid": user_id},
            fetch=True,
        )
        result = []
        for r in rows:
            mapping = dict(r._mapping)
            product = {
                col: mapping.pop(f"product__{col}") for col in PRODUCT_EMBED_COLUMNS
            }
            mapping["id"] = str(mapping["id"]) if mapping.get("id") is not None else None
            mapping["product"] = product if product.get("id") is not None else None
            result.append(mapping)
        logger.info("sqla_cart: method=list_lines user_id=%s row_count=%s", user_id, len(result))
        return result

    def insert_line(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        logger.info("sqla_cart: method=insert_line user_id=%s product_id=%s qty=%s", user_id, product_id, quantity)
        self._execute(
            "insert_line",
            f"INSERT INTO {self._table} (user_id, product_id, quantity) VALUES (:uid, :pid, :qty)",
            {"uid": user_id, "pid": product_id, "qty": str(quantity)},
        )
        logger.info("sqla_cart: method=insert_line user_id=%s product_id=%s result=success", user_id, product_id)
        return {"user_id": user_id, "product_id": product_id, "quantity": str(quantity)}

    def update_line(self, user_id: str, product_id: str, quantity: int) -> None:
        logger.info("sqla_cart: method=update_line user_id=%s product_id=%s qty=%s", user_id, product_id, quantity)
        self._execute(
            "update_line",
            f"UPDATE {self._table} SET quantity = :qty WHERE user_id = :uid AND product_id = :pid",
            {"uid": user_id, "pid": product_id, "qty": str(quantity)},
        )

    def delete_line(self, user_id: str, product_id: str) -> None:
        logger.info("sqla_cart: method=delete_line user_id=%s product_id=%s", user_id, product_id)
        self._execute(
            "delete_line",
            f"DELETE FROM {self._table} WHERE user_id = :uid AND product_id = :pid",
            {"uid": user_id, "pid": product_id},
        )

    def delete_all(self, user_id: str) -> None:
        logger.info("sqla_cart: method=delete_all user_id=%s", user_id)
        self._execute("delete_all", f"DELETE FROM {self._table} WHERE user_id = :uid", {"uid": user_id})
