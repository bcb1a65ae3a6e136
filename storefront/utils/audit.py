"""
Audit trail for catalog and cart actions.
Append-only rows in the `logs` table; recording never fails the caller.
"""

import json
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storefront.errors import BackendError
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient, get_supabase_client

logger = get_logger("utils.audit")

INFO = "info"
ERROR = "error"
SUCCESS = "success"

SENSITIVE_KEYS = ("password", "token", "api_key", "secret", "email", "phone", "address")


def redact_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace values of sensitive-looking keys with '[REDACTED]' (recursively)."""
    redacted = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive_data(value)
        else:
            redacted[key] = value
    return redacted


@dataclass
class AuditEvent:
    type: str           # "cart", "product", ...
    level: str          # info | warning | error | success
    action: str         # e.g. "add_to_cart_attempt"
    message: str
    user_id: Optional[str] = None
    product_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    status: str = "completed"
    execution_time_ms: Optional[int] = None
    source: Optional[str] = None

    def to_row(self, environment: str) -> Dict[str, Any]:
        return {
            "type": self.type,
            "level": self.level,
            "action": self.action,
            "message": self.message,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "details": redact_sensitive_data(self.details),
            "status": self.status,
            "environment": environment,
            "execution_time_ms": self.execution_time_ms,
            "source": self.source,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }


def elapsed_ms(started: float) -> int:
    """Milliseconds since a time.monotonic() reading."""
    return int((time.monotonic() - started) * 1000)


class AuditRecorder:
    """Writes AuditEvents to the audit table via the Supabase REST API."""

    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        table: str = "logs",
        environment: str = "development",
    ) -> None:
        self._client = client
        self._table = table
        self._environment = environment

    def record(self, event: AuditEvent) -> bool:
        """Insert one event. Returns False (after a warning) if the write failed."""
        row = self.to_row(event)
        try:
            client = self._client or get_supabase_client()
            client.insert(self._table, row)
        except BackendError as e:
            # Don't fail the action if auditing fails
            logger.warning("audit: action=%s result=error error=%s", event.action, e)
            return False
        return True

    def to_row(self, event: AuditEvent) -> Dict[str, Any]:
        return event.to_row(self._environment)


class _SQLAlchemyAuditRecorder(AuditRecorder):
    """Audit rows via DATABASE_URL using a raw INSERT."""

    def __init__(self, db_url: Optional[str] = None, engine=None, table: str = "logs",
                 environment: str = "development") -> None:
        from storefront.data.sql_engine import create_store_engine, quote_ident

        super().__init__(table=table, environment=environment)
        self._engine = engine if engine is not None else create_store_engine(db_url)
        self._quoted_table = quote_ident(table)

    def record(self, event: AuditEvent) -> bool:
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError

        row = self.to_row(event)
        row["details"] = json.dumps(row["details"], default=str)
        insert_sql = text(
            f"INSERT INTO {self._quoted_table} ("
            "type, level, action, message, user_id, product_id, details, status, "
            "environment, execution_time_ms, source, created_at"
            ") VALUES ("
            ":type, :level, :action, :message, :user_id, :product_id, :details, :status, "
            ":environment, :execution_time_ms, :source, :created_at)"
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(insert_sql, row)
        except SQLAlchemyError as e:
            logger.warning("audit: action=%s result=error error=%s", event.action, e)
            return False
        return True


_recorder: Optional[AuditRecorder] = None


def get_audit_recorder() -> AuditRecorder:
    global _recorder
    if _recorder is None:
        from storefront.core.config import get_config
        config = get_config()
        db_url = os.environ.get("DATABASE_URL", "")
        if db_url:
            _recorder = _SQLAlchemyAuditRecorder(db_url, table=config.audit_table,
                                                 environment=config.environment)
        else:
            _recorder = AuditRecorder(table=config.audit_table, environment=config.environment)
    return _recorder
