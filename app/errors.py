from enum import Enum


class RejectionReason(str, Enum):
    SESSION_NOT_FOUND = "SessionNotFound"
    SESSION_IN_PAST = "SessionInPast"
    ALREADY_BOOKED = "AlreadyBooked"
    OVERLAPPING_BOOKING = "OverlappingBooking"
    SUBSCRIPTION_INACTIVE = "SubscriptionInactive"
    NO_MEMBERSHIP = "NoMembership"
    WEEKLY_LIMIT_REACHED = "WeeklyLimitReached"
    SESSION_FULL = "SessionFull"
    # raised by the management operations
    BOOKING_NOT_FOUND = "BookingNotFound"
    USER_NOT_FOUND = "UserNotFound"
    SESSION_HAS_BOOKINGS = "SessionHasBookings"
    INVALID_TRANSITION = "InvalidTransition"
    # raised by the membership level catalog
    LEVEL_NOT_FOUND = "LevelNotFound"
    LEVEL_NAME_TAKEN = "LevelNameTaken"


class BookingRejected(Exception):
    """A business rule refused the request. Nothing was written."""

    def __init__(self, reason: RejectionReason, message: str, **details):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.details = details

    def __repr__(self):
        return f"BookingRejected({self.reason.value}: {self.message})"


class SessionValidationError(Exception):
    """Session create/update data breaks a catalog invariant."""

    def __init__(self, errors: dict):
        super().__init__("Validation failed")
        self.errors = errors


class LedgerUnavailable(Exception):
    """Persistence failed underneath the engine. Not retried here."""


class PermissionDenied(Exception):
    pass
