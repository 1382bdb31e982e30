"""Typed failures raised by the scheduling core.

The HTTP layer maps each kind to a status code; callers get a stable
``code`` plus a human-readable message and never a stack trace.
"""


class SchedulingError(Exception):
    """Base class for every failure the core reports to its callers."""

    status_code: int = 500
    default_message: str = "Scheduling request failed"

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        self.message = message or self.default_message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


class ValidationError(SchedulingError):
    """Malformed or missing required input."""

    status_code = 400
    default_message = "Invalid request"


class AuthorizationError(SchedulingError):
    """Actor lacks permission for the action."""

    status_code = 403
    default_message = "Not authorized to perform this action"


class NotFoundError(SchedulingError):
    """Referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"


class ConflictError(SchedulingError):
    """Slot already taken, patient already booked, or slot already blocked."""

    status_code = 409
    default_message = "Slot not available"


class StorageError(SchedulingError):
    """Underlying store failure. Surfaced to callers as a generic failure."""

    status_code = 500
    default_message = "Service temporarily unavailable"


class UniqueConstraintError(StorageError):
    """Insert or update rejected by a unique index (see ``uq_bookings_active_slot``)."""

    status_code = 409
    default_message = "Slot already booked"
