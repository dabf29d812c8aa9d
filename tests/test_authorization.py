from datetime import date, datetime, timezone

from smart_parking.domain.authorization import (
    ReservationAuthorization,
    SubscriptionAuthorization,
    resolve_authorization,
)
from smart_parking.domain.common import ReservationStatus
from smart_parking.domain.entities import Reservation, Subscription

START = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)
END = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)


def _reservation(user_id="u1", facility_id="f1", status=ReservationStatus.CONFIRMED):
    return Reservation(user_id, facility_id, START, END, 20.0, status=status, id="r1")


def _subscription(user_id="u1", facility_id="f1"):
    return Subscription(
        user_id, facility_id, {1: [{"start": "09:00", "end": "17:00"}]}, 1, date(2030, 1, 7), 100.0, id="s1"
    )


class TestResolveAuthorization:
    def test_reservation_grants_until_its_end(self):
        auth = resolve_authorization("u1", "f1", START, [_reservation()], [])
        assert auth == ReservationAuthorization("r1", END)

    def test_reservation_wins_over_subscription(self):
        auth = resolve_authorization("u1", "f1", START, [_reservation()], [_subscription()])
        assert isinstance(auth, ReservationAuthorization)

    def test_falls_back_to_subscription(self):
        auth = resolve_authorization("u1", "f1", START, [], [_subscription()])
        assert auth == SubscriptionAuthorization("s1")

    def test_other_users_bookings_do_not_count(self):
        assert resolve_authorization("u2", "f1", START, [_reservation()], [_subscription()]) is None

    def test_other_facility_does_not_count(self):
        assert resolve_authorization("u1", "f2", START, [_reservation()], [_subscription()]) is None

    def test_cancelled_reservation_does_not_count(self):
        cancelled = _reservation(status=ReservationStatus.CANCELLED)
        assert resolve_authorization("u1", "f1", START, [cancelled], []) is None

    def test_nothing_outside_the_window(self):
        late = datetime(2030, 1, 7, 18, 0, tzinfo=timezone.utc)
        assert resolve_authorization("u1", "f1", late, [_reservation()], [_subscription()]) is None
