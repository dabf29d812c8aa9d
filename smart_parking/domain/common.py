from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERSTAYED = "overstayed"


class UnauthorizedReason(str, Enum):
    RESERVATION_EXPIRED = "reservation_expired"
    NO_RESERVATION_OR_SUBSCRIPTION = "no_reservation_or_subscription"


DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
