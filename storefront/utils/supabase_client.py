import os
import httpx
from typing import Dict, Any, List, Optional, Sequence, Tuple
from storefront.errors import BackendError
from storefront.utils.logger import get_logger

logger = get_logger("utils.supabase_client")

Params = Sequence[Tuple[str, str]]


def quote_value(value: Any) -> str:
    """Quote a value for PostgREST list/logic operators (in.(...), or=(...))."""
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def in_filter(values: Sequence[Any]) -> str:
    return "in.(" + ",".join(quote_value(v) for v in values) + ")"


def _error_from_response(response: httpx.Response) -> BackendError:
    code = None
    message = response.text or f"HTTP {response.status_code}"
    details = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or message
        details = body.get("details") or body.get("hint")
    return BackendError(message, code=code, details=details, status_code=response.status_code)


class SupabaseClient:
    """
    Lightweight client for interacting with Supabase REST API.

    Every method raises BackendError on an HTTP or transport failure; the
    PostgREST error code (or Postgres SQLSTATE) is preserved on `code`.
    """
    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url or os.environ.get("SUPABASE_URL") or ""
        self.key = key or os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get("SUPABASE_KEY") or ""

        if not self.url or not self.key:
            logger.warning("SUPABASE_URL or SUPABASE_KEY not set in environment.")

        self.headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation"
        }
        self.client = httpx.Client(
            base_url=self.url,
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )

    def _send(self, method: str, table: str, params: Optional[Params] = None, json: Any = None) -> Any:
        try:
            response = self.client.request(method, f"/rest/v1/{table}", params=list(params or []), json=json)
        except httpx.HTTPError as e:
            logger.error(f"Supabase {method} failed on {table}: {e}")
            raise BackendError(str(e)) from e
        if response.is_error:
            error = _error_from_response(response)
            logger.error(f"Supabase {method} failed on {table}: {error!r}")
            raise error
        if not response.content:
            return []
        return response.json()

    def select(
        self,
        table: str,
        params: Optional[Params] = None,
        select: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a Supabase table. `params` are PostgREST filter pairs such as
        ("form_factor", "eq.Laptop").
        """
        query: List[Tuple[str, str]] = [("select", select)]
        query.extend(params or [])
        if order:
            query.append(("order", order))
        if limit:
            query.append(("limit", str(limit)))
        rows = self._send("GET", table, query)
        return rows if isinstance(rows, list) else []

    def insert(self, table: str, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self._send("POST", table, json=payload)
        return rows if isinstance(rows, list) else []

    def update(self, table: str, params: Params, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = self._send("PATCH", table, params, json=payload)
        return rows if isinstance(rows, list) else []

    def delete(self, table: str, params: Params) -> List[Dict[str, Any]]:
        rows = self._send("DELETE", table, params)
        return rows if isinstance(rows, list) else []

    def close(self) -> None:
        self.client.close()


# Singleton instance (lazy, so importing never needs credentials)
_supabase: Optional[SupabaseClient] = None


def get_supabase_client() -> SupabaseClient:
    global _supabase
    if _supabase is None:
        from storefront.core.config import get_config
        _supabase = SupabaseClient(timeout=get_config().request_timeout)
    return _supabase
