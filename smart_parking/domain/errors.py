class ParkingError(ValueError):
    """Base of every failure a use case reports to its caller."""
    retryable = False


class ValidationError(ParkingError):
    """Malformed or out-of-range input, rejected before any mutation."""


class NotFoundError(ParkingError):
    """Facility, user, reservation, subscription or session does not exist."""


class ConflictError(ParkingError):
    """No capacity, slot conflict, duplicate active subscription or session.

    Worth retrying with another window, or after a short backoff when an
    admission race was lost.
    """
    retryable = True


class StateError(ParkingError):
    """Illegal state transition, e.g. exiting a session that is not active."""


class AuthorizationError(ParkingError):
    """Entry without a valid reservation or subscription, or acting on another user's booking."""
