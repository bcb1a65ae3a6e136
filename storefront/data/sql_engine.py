"""
Shared helpers for the DATABASE_URL (SQLAlchemy) stores.
"""
import re
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

_SQLITE_CODES = (
    (re.compile(r"UNIQUE constraint failed", re.I), "23505"),
    (re.compile(r"FOREIGN KEY constraint failed", re.I), "23503"),
)


def create_store_engine(db_url: str) -> Engine:
    """Create an engine; Postgres gets the small pool the Supabase pooler allows."""
    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, or every thread sees its own empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(db_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    # pool_size=3 + max_overflow=2 keeps us within Supabase session-mode limits
    return create_engine(
        db_url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=2,
        connect_args={"connect_timeout": 15},
    )


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def sqlstate_of(exc: BaseException) -> Optional[str]:
    """Best-effort SQLSTATE for a DBAPI error wrapped by SQLAlchemy."""
    orig = getattr(exc, "orig", exc)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return str(code)
    message = str(orig)
    for pattern, sqlstate in _SQLITE_CODES:
        if pattern.search(message):
            return sqlstate
    return None
