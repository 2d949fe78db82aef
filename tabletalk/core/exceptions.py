"""
Domain Exceptions

Every error the ordering core raises on purpose derives from
``TableTalkError`` and carries the HTTP status the API layer answers with.
Exception handlers in ``tabletalk.main`` turn them into ``ErrorResponse``
bodies; anything else is an unexpected 500.

OracleError is the exception to the rule: it never reaches a caller, the
action extractor recovers from it with the deterministic fallback parser.
"""

from typing import Optional


class TableTalkError(Exception):
    """Base class for expected, typed failures."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.error
        super().__init__(self.detail)


class BadRequestError(TableTalkError):
    """Request is well-formed but refers to something unusable (e.g. an unavailable menu item)."""
    status_code = 400
    error = "Bad Request"


class NotFoundError(TableTalkError):
    """Tenant, table, order or session does not exist for this tenant."""
    status_code = 404
    error = "Not Found"


class ConflictError(TableTalkError):
    """A uniqueness rule or state rule refused the write."""
    status_code = 409
    error = "Conflict"


class InvalidTransitionError(ConflictError):
    """Order status change not allowed by the lifecycle."""
    error = "Invalid status transition"


class PaymentRejectedError(TableTalkError):
    """Payment does not match the outstanding order."""
    status_code = 400
    error = "Payment rejected"


class OrderCreationError(TableTalkError):
    """Order-number allocation kept colliding until the retry budget ran out."""
    status_code = 500
    error = "ORDER_CREATE_FAILED"


class OracleError(TableTalkError):
    """The language model call failed, timed out, or returned garbage."""
    status_code = 502
    error = "Oracle unavailable"
