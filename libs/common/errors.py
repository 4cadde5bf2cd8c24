"""Service error taxonomy.

Every failure a service function reports to its caller is one of these.
The HTTP layer renders them through ``libs.common.error_handler``:

    {"detail": "<message>", "kind": "<kind>", "code": "<code or null>"}

``kind`` is the coarse category (validation, not_found, conflict,
stock_insufficient, internal); ``code`` is an optional stable sub-kind such
as ``empty_cart`` or ``coupon_exhausted`` that clients may branch on.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "internal"
    status_code = 500
    retryable = False

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "code": self.code}


class ValidationFailedError(ServiceError):
    """Malformed or missing input. Not retryable as-is."""

    kind = "validation"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError):
    """Uniqueness violation or a lost race; retry with fresh data."""

    kind = "conflict"
    status_code = 409


class StockInsufficientError(ServiceError):
    kind = "stock_insufficient"
    status_code = 409


class ServiceUnavailableError(ServiceError):
    """Persistence unavailable or a deadline exceeded. Safe to retry with backoff."""

    kind = "internal"
    status_code = 503
    retryable = True
