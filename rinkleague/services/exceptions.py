"""
Domain errors for the event registration and roster engine.

Every error is recoverable and caller-facing: routes translate them into
HTTP responses using ``status_code``. They subclass ValueError so callers that
only care about "bad request" can keep catching ValueError.
"""


class RosterError(ValueError):
    """Base class for roster errors."""

    status_code = 400
    default_message = "Invalid roster operation"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class EventNotFound(RosterError):
    """Operation references an event that does not exist."""

    status_code = 404
    default_message = "Event not found"


class EventClosed(RosterError):
    """Self-service join/leave on a past or cancelled event."""

    default_message = "Event is no longer open for sign-up"


class AlreadyRegistered(RosterError):
    """Self-join while an active registration already exists."""

    default_message = "Already registered for this event"


class AlreadyActive(RosterError):
    """Admin direct add while the user already holds an active registration."""

    default_message = "User already registered for this event"


class NotRegistered(RosterError):
    """Leave/remove with no active registration."""

    default_message = "Not registered for this event"


class InvalidState(RosterError):
    """Target registration is not in the status the operation requires."""

    default_message = "Registration is not in a valid state for this operation"


class Forbidden(RosterError):
    """Actor is neither an admin nor (where allowed) a captain for the event."""

    status_code = 403
    default_message = "Forbidden"


class InvalidInput(RosterError):
    """Malformed arguments (line out of range, empty reorder list, ...)."""

    default_message = "Invalid input"
