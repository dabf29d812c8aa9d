from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Union

from smart_parking.domain.entities import Reservation, Subscription


@dataclass(frozen=True)
class ReservationAuthorization:
    reservation_id: str
    authorized_until: datetime


@dataclass(frozen=True)
class SubscriptionAuthorization:
    subscription_id: str


# None means the user holds nothing that lets them park at that instant
Authorization = Optional[Union[ReservationAuthorization, SubscriptionAuthorization]]


def resolve_authorization(
    user_id: str,
    facility_id: str,
    instant: datetime,
    reservations: Iterable[Reservation],
    subscriptions: Iterable[Subscription],
) -> Authorization:
    """Pick what authorizes ``user_id`` at ``instant``; a reservation beats a subscription."""
    for reservation in reservations:
        if (
            reservation.user_id == user_id
            and reservation.facility_id == facility_id
            and reservation.is_active_at(instant)
        ):
            return ReservationAuthorization(reservation.id, reservation.end_time)

    for subscription in subscriptions:
        if (
            subscription.user_id == user_id
            and subscription.facility_id == facility_id
            and subscription.covers(instant)
        ):
            return SubscriptionAuthorization(subscription.id)

    return None
