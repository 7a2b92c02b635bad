"""Domain error taxonomy.

Learn: Services raise these instead of HTTPException so they stay usable
outside a request (CLI, tests). Each error carries the HTTP status and the
machine-readable code that ends up in the error envelope:

    {"success": false, "error": {"code": ..., "message": ..., "details": ...}}

NotFound is deliberately used for cross-tenant access as well as for
absent rows, so a caller can never tell the two apart.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an API error response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class Unauthorized(AppError):
    """No session, an invalid session, or an expired session."""

    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(AppError):
    """Authenticated, but without the tenant or role authority required."""

    status_code = 403
    code = "FORBIDDEN"


class NotFound(AppError):
    """Resource absent, or owned by another tenant."""

    status_code = 404
    code = "NOT_FOUND"


class Conflict(AppError):
    """Uniqueness violation (slug, token, membership)."""

    status_code = 409
    code = "CONFLICT"


class Expired(AppError):
    """A time-bound token is past its horizon."""

    status_code = 410
    code = "EXPIRED"


class AlreadyUsed(AppError):
    """A single-use token was presented again."""

    status_code = 409
    code = "ALREADY_USED"


class ValidationError(AppError):
    """Malformed input."""

    status_code = 422
    code = "VALIDATION_ERROR"


class EmailDeliveryError(AppError):
    """The email transport failed in an environment where that is fatal."""

    status_code = 500
    code = "EMAIL_DELIVERY_FAILED"


class LookupTimeout(AppError):
    """A request-context lookup did not finish within its deadline."""

    status_code = 503
    code = "LOOKUP_TIMEOUT"
