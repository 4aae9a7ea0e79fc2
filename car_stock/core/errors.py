"""
Domain error taxonomy shared by the sale, stock and payment services.

Each error carries a stable ``code`` that callers can switch on, the human
readable message and arbitrary keyword context. The HTTP layer renders them
through a single exception handler using ``http_status``.
"""

from enum import Enum
from typing import Any, Dict


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool, list, dict)):
        return value
    return str(value)


class DomainError(Exception):
    """Base class for all expected business failures."""

    code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses and logs."""
        return {
            "error": self.code,
            "message": self.message,
            "details": {
                key: _jsonable(value) for key, value in self.context.items()
            },
        }


class UnauthorizedError(DomainError):
    """Actor's role does not permit the requested action."""

    code = "UNAUTHORIZED"
    http_status = 403


class NotFoundError(DomainError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class IllegalTransitionError(DomainError):
    """Requested status is not reachable from the current status."""

    code = "ILLEGAL_TRANSITION"
    http_status = 409


class GuardFailedError(DomainError):
    """Transition is topologically legal but a business precondition fails."""

    code = "GUARD_FAILED"
    http_status = 422

    def __init__(self, reason: str, **context: Any):
        super().__init__(reason, reason=reason, **context)
        self.reason = reason


class LinkageConflictError(DomainError):
    """Stock unit is held by another active sale or cannot be linked."""

    code = "LINKAGE_CONFLICT"
    http_status = 409


class ConcurrentModificationError(DomainError):
    """A row changed between read and write."""

    code = "CONCURRENT_MODIFICATION"
    http_status = 409


class UnavailableError(DomainError):
    """Persistence layer is unreachable. Never retried."""

    code = "UNAVAILABLE"
    http_status = 503
