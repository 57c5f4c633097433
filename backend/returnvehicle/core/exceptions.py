"""
Domain errors raised by the service layer.

Each class maps to exactly one HTTP status and one machine readable `code`
so clients can branch on the cause ("sold out" vs "already cancelled").
Handlers that render them live in returnvehicle.api.errors.
"""


class DomainError(Exception):
    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed or missing input, rejected before any mutation."""

    status_code = 400
    code = "validation_error"


class UnauthenticatedError(DomainError):
    status_code = 401
    code = "unauthenticated"


class ForbiddenError(DomainError):
    status_code = 403
    code = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class SeatUnavailableError(DomainError):
    """The conditional decrement matched no row: race lost or capacity exhausted."""

    status_code = 409
    code = "seat_unavailable"


class InvalidStateError(DomainError):
    status_code = 409
    code = "invalid_state"


class WindowClosedError(DomainError):
    status_code = 409
    code = "window_closed"


class DependencyFailureError(DomainError):
    """Storage or identity provider unavailable. The only retryable class."""

    status_code = 503
    code = "dependency_failure"
