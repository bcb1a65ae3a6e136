"""
Read access to the `products` table.

Two stores with the same public interface:
  - SupabaseProductStore: PostgREST REST API via httpx (SUPABASE_URL + key)
  - _SQLAlchemyProductStore: direct connection via DATABASE_URL

Table columns used by the catalog:
  id, slug, product_name, sku, form_factor, processor, memory, storage,
  screen_size, technologies, copilot, "five_g_Enabled", total_inventory,
  stock_quantity, post_status, inventory_type, thumbnail, gallery, date

Both stores raise ProductQueryError on failure; they never retry.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from storefront.errors import BackendError, ProductQueryError
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import (
    SupabaseClient,
    get_supabase_client,
    in_filter,
    quote_value,
)

logger = get_logger("data.product_store")

EQ = "eq"
IN = "in"

PRODUCT_COLUMNS = frozenset({
    "id", "slug", "product_name", "sku", "form_factor", "processor", "memory",
    "storage", "screen_size", "technologies", "copilot", "five_g_Enabled",
    "total_inventory", "stock_quantity", "post_status", "inventory_type",
    "thumbnail", "gallery", "date", "created_at",
})


# ---------------------------------------------------------------------------
# Query description
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Predicate:
    """Equality (one value) or set-membership (several values) on a column."""
    field: str
    op: str
    values: Tuple[str, ...]

    @classmethod
    def for_values(cls, field: str, values: Sequence[str]) -> "Predicate":
        values = tuple(values)
        return cls(field, EQ if len(values) == 1 else IN, values)


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match of `term` against any of `fields`."""
    term: str
    fields: Tuple[str, ...] = ("product_name", "sku")


@dataclass(frozen=True)
class ProductQuery:
    predicates: Tuple[Predicate, ...] = ()
    search: Optional[TextSearch] = None
    order_by: str = "date"
    descending: bool = True


def _query_error(error: BackendError) -> ProductQueryError:
    return ProductQueryError(error.message, code=error.code, details=error.details,
                             status_code=error.status_code)


def _check_column(name: str) -> str:
    if name not in PRODUCT_COLUMNS:
        raise ValueError(f"Unknown products column: {name}")
    return name


# ---------------------------------------------------------------------------
# Singleton store (lazy-init)
# ---------------------------------------------------------------------------
_store_cache = None


def get_product_store():
    global _store_cache
    if _store_cache is None:
        from storefront.core.config import get_config
        table = get_config().products_table
        # Prefer DATABASE_URL (direct Postgres connection, bypasses RLS)
        db_url = os.environ.get("DATABASE_URL", "")
        if db_url:
            logger.info("Using SQLAlchemy product store via DATABASE_URL")
            _store_cache = _SQLAlchemyProductStore(db_url, table=table)
        else:
            if not os.environ.get("SUPABASE_URL"):
                logger.error("No product store configured: set DATABASE_URL or SUPABASE_URL+SUPABASE_KEY")
            _store_cache = SupabaseProductStore(table=table)
    return _store_cache


# ---------------------------------------------------------------------------
# REST store
# ---------------------------------------------------------------------------

class SupabaseProductStore:
    """Query the Supabase `products` table via its REST API."""

    def __init__(self, client: Optional[SupabaseClient] = None, table: str = "products") -> None:
        self._client = client or get_supabase_client()
        self._table = table

    @staticmethod
    def build_params(query: ProductQuery) -> List[Tuple[str, str]]:
        """Translate a ProductQuery into PostgREST filter pairs."""
        params: List[Tuple[str, str]] = []
        for predicate in query.predicates:
            column = _check_column(predicate.field)
            if predicate.op == EQ:
                params.append((column, f"eq.{predicate.values[0]}"))
            else:
                params.append((column, in_filter(predicate.values)))
        if query.search is not None and query.search.term:
            pattern = quote_value(f"*{query.search.term}*")
            clauses = ",".join(f"{_check_column(f)}.ilike.{pattern}" for f in query.search.fields)
            params.append(("or", f"({clauses})"))
        return params

    def query_products(self, query: ProductQuery) -> List[Dict[str, Any]]:
        params = self.build_params(query)
        direction = "desc" if query.descending else "asc"
        order = f"{_check_column(query.order_by)}.{direction}.nullslast"
        logger.info("product_store: method=query_products params=%s order=%s", params, order)
        try:
            rows = self._client.select(self._table, params, order=order)
        except BackendError as e:
            raise _query_error(e) from e
        logger.info("product_store: method=query_products result=success row_count=%s", len(rows))
        return rows

    def distinct_values(self, column: str) -> List[str]:
        """Non-null, non-empty values of one column (duplicates removed by the caller)."""
        column = _check_column(column)
        try:
            rows = self._client.select(
                self._table,
                [(column, "not.is.null"), (column, "neq.")],
                select=column,
            )
        except BackendError as e:
            raise _query_error(e) from e
        return [row[column] for row in rows if row.get(column) is not None]


# ---------------------------------------------------------------------------
# SQLAlchemy store (DATABASE_URL)
# ---------------------------------------------------------------------------

class _SQLAlchemyProductStore:
    """
    Product store using SQLAlchemy + DATABASE_URL.
    Same public interface as SupabaseProductStore.
    """

    def __init__(self, db_url: Optional[str] = None, engine=None, table: str = "products") -> None:
        from storefront.data.sql_engine import create_store_engine

        self._table = table
        if engine is not None:
            self._engine = engine
            return
        db_url = db_url or os.environ.get("DATABASE_URL", "")
        if not db_url:
            logger.error("DATABASE_URL not set, no product store available")
            self._engine = None
            return
        self._engine = create_store_engine(db_url)

    def _rows(self, sql, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        from sqlalchemy.exc import SQLAlchemyError
        from storefront.data.sql_engine import sqlstate_of

        if self._engine is None:
            raise ProductQueryError("Product store engine not available")
        try:
            with self._engine.connect() as conn:
                result = conn.execute(sql, params)
                return [dict(r._mapping) for r in result]
        except SQLAlchemyError as e:
            logger.error("sqla_products: query failed error=%s", e)
            raise ProductQueryError(str(e), code=sqlstate_of(e)) from e

    def query_products(self, query: ProductQuery) -> List[Dict[str, Any]]:
        from sqlalchemy import bindparam, text as sa_text
        from storefront.data.sql_engine import quote_ident

        conditions: List[str] = []
        params: Dict[str, Any] = {}
        expanding: List[str] = []

        for i, predicate in enumerate(query.predicates):
            column = quote_ident(_check_column(predicate.field))
            name = f"p{i}"
            if predicate.op == EQ:
                conditions.append(f"{column} = :{name}")
                params[name] = predicate.values[0]
            else:
                conditions.append(f"{column} IN :{name}")
                params[name] = list(predicate.values)
                expanding.append(name)

        if query.search is not None and query.search.term:
            term = query.search.term.lower()
            term = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            params["term"] = f"%{term}%"
            clauses = " OR ".join(
                f"LOWER({quote_ident(_check_column(f))}) LIKE :term ESCAPE '\\'"
                for f in query.search.fields
            )
            conditions.append(f"({clauses})")

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        order_col = quote_ident(_check_column(query.order_by))
        direction = "DESC" if query.descending else "ASC"
        sql = sa_text(
            f"SELECT * FROM {quote_ident(self._table)}{where} "
            f"ORDER BY ({order_col} IS NULL), {order_col} {direction}"
        )
        if expanding:
            sql = sql.bindparams(*(bindparam(name, expanding=True) for name in expanding))

        logger.info("sqla_products: method=query_products conditions=%s", conditions)
        rows = self._rows(sql, params)
        logger.info("sqla_products: method=query_products result=success row_count=%s", len(rows))
        return rows

    def distinct_values(self, column: str) -> List[str]:
        from sqlalchemy import text as sa_text
        from storefront.data.sql_engine import quote_ident

        col = quote_ident(_check_column(column))
        sql = sa_text(
            f"SELECT DISTINCT {col} AS value FROM {quote_ident(self._table)} "
            f"WHERE {col} IS NOT NULL AND {col} <> ''"
        )
        return [row["value"] for row in self._rows(sql, {})]
