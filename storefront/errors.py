"""
Exception types shared by the backend collaborators and the catalog/cart core.
"""
from typing import Any, Optional


class StorefrontError(RuntimeError):
    """Base class for storefront core errors."""


class BackendError(StorefrontError):
    """
    Raised when the hosted backend rejects or fails a request.

    `code` carries the PostgREST error code or the Postgres SQLSTATE
    (e.g. "23505" unique violation, "23503" foreign key violation) when
    the backend reports one.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Any = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"BackendError(code={self.code!r}, status={self.status_code!r}, message={self.message!r})"


class ProductQueryError(BackendError):
    """Raised by product stores when a catalog read fails."""


class CartMutationError(BackendError):
    """Raised by cart stores when a cart-line mutation fails."""


class MissingCustomValueError(ValueError):
    """Raised when the "Custom" facet sentinel is chosen without override text."""

    def __init__(self, fields):
        self.fields = list(fields)
        super().__init__(f"Please enter custom values for: {', '.join(self.fields)}")
