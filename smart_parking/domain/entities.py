from datetime import date, datetime, timedelta, timezone
from typing import Dict, Mapping, Optional

from smart_parking.config.settings_env import settings
from smart_parking.domain.common import ReservationStatus, SubscriptionStatus, SessionStatus
from smart_parking.domain.errors import StateError, ValidationError
from smart_parking.domain.value_objects import (
    GpsCoordinates,
    OpeningHours,
    TimeSlot,
    WeeklySlots,
    parse_weekly_slots,
    weekly_slots_to_dict,
)
from smart_parking.shared.time_utils import (
    add_months,
    contains,
    day_of_week,
    duration_minutes,
    ensure_utc,
    overlaps,
    time_of_day,
)


class User:
    def __init__(
        self, email: str, full_name: str, id: Optional[str] = None, created_at: Optional[datetime] = None
    ):
        self.id = id
        self.email = email
        self.full_name = full_name
        self.created_at = created_at


class Facility:
    def __init__(
        self,
        owner_id: str,
        latitude: float,
        longitude: float,
        total_spaces: int,
        hourly_rate: float,
        opening_hours: Optional[Mapping] = None,
        id: Optional[str] = None,
        available_spots: Optional[int] = None,
        version: int = 0,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.owner_id = owner_id
        self.latitude = latitude
        self.longitude = longitude
        self.total_spaces = total_spaces
        self.hourly_rate = hourly_rate
        self.opening_hours = OpeningHours(opening_hours)
        self.available_spots = total_spaces if available_spots is None else available_spots
        self.version = version
        self.created_at = created_at

    @classmethod
    def create(
        cls,
        owner_id: str,
        latitude: float,
        longitude: float,
        total_spaces: int,
        hourly_rate: float,
        opening_hours: Optional[Mapping] = None,
    ) -> "Facility":
        if not owner_id:
            raise ValidationError("Owner ID is required")
        GpsCoordinates(latitude, longitude)
        _check_total_spaces(total_spaces)
        _check_hourly_rate(hourly_rate)
        return cls(
            owner_id=owner_id,
            latitude=latitude,
            longitude=longitude,
            total_spaces=total_spaces,
            hourly_rate=hourly_rate,
            opening_hours=opening_hours,
        )

    @property
    def location(self) -> GpsCoordinates:
        return GpsCoordinates(self.latitude, self.longitude)

    def is_open_at(self, instant: datetime) -> bool:
        return self.opening_hours.is_open_at(ensure_utc(instant))

    def distance_to(self, point: GpsCoordinates) -> float:
        return self.location.distance_to(point)

    def update_rate(self, hourly_rate: float):
        _check_hourly_rate(hourly_rate)
        self.hourly_rate = hourly_rate

    def update_total_spaces(self, total_spaces: int):
        _check_total_spaces(total_spaces)
        delta = total_spaces - self.total_spaces
        self.total_spaces = total_spaces
        self.available_spots = min(total_spaces, max(0, self.available_spots + delta))

    def update_opening_hours(self, opening_hours: Optional[Mapping]):
        self.opening_hours = OpeningHours(opening_hours)

    def reserve_spot(self):
        # Cached counter only; real availability comes from the occupancy sources
        self.available_spots = max(0, self.available_spots - 1)


def _check_total_spaces(total_spaces: int):
    if not isinstance(total_spaces, int) or isinstance(total_spaces, bool) or total_spaces < 1:
        raise ValidationError("Total spaces must be at least 1")


def _check_hourly_rate(hourly_rate: float):
    if hourly_rate is None or hourly_rate < 0:
        raise ValidationError("Hourly rate cannot be negative")


class Reservation:
    def __init__(
        self,
        user_id: str,
        facility_id: str,
        start_time: datetime,
        end_time: datetime,
        total_amount: float,
        status: ReservationStatus = ReservationStatus.PENDING,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.user_id = user_id
        self.facility_id = facility_id
        self.start_time = start_time
        self.end_time = end_time
        self.total_amount = total_amount
        self.status = ReservationStatus(status)
        self.created_at = created_at

    @classmethod
    def create(
        cls,
        user_id: str,
        facility_id: str,
        start_time: datetime,
        end_time: datetime,
        total_amount: float,
        now: Optional[datetime] = None,
    ) -> "Reservation":
        """Build a pending reservation, refusing anything that breaks its invariants."""
        start_time, end_time = ensure_utc(start_time), ensure_utc(end_time)
        now = ensure_utc(now or datetime.now(timezone.utc))
        if start_time >= end_time:
            raise ValidationError("Start time must be before end time")
        if start_time < now:
            raise ValidationError("Reservation start time cannot be in the past")
        if end_time - start_time > timedelta(hours=settings.MAX_RESERVATION_HOURS):
            raise ValidationError(f"Reservation cannot exceed {settings.MAX_RESERVATION_HOURS} hours")
        if total_amount <= 0:
            raise ValidationError("Amount must be positive")
        return cls(user_id, facility_id, start_time, end_time, total_amount)

    @property
    def duration_minutes(self) -> int:
        return int(duration_minutes(self.start_time, self.end_time))

    def is_active(self) -> bool:
        return self.status == ReservationStatus.CONFIRMED

    def is_active_at(self, instant: datetime) -> bool:
        return self.is_active() and contains(self.start_time, self.end_time, instant)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.is_active() and overlaps(self.start_time, self.end_time, start, end)

    def confirm(self):
        if self.status != ReservationStatus.PENDING:
            raise StateError("Only pending reservations can be confirmed")
        self.status = ReservationStatus.CONFIRMED

    def cancel(self):
        if self.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise StateError(f"Cannot cancel reservation in status: {self.status.value}")
        self.status = ReservationStatus.CANCELLED

    def complete(self):
        if self.status != ReservationStatus.CONFIRMED:
            raise StateError("Only confirmed reservations can be completed")
        self.status = ReservationStatus.COMPLETED


class Subscription:
    def __init__(
        self,
        user_id: str,
        facility_id: str,
        weekly_time_slots: Mapping,
        duration_months: int,
        start_date: date,
        monthly_amount: float,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        id: Optional[str] = None,
        end_date: Optional[date] = None,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.user_id = user_id
        self.facility_id = facility_id
        self.weekly_time_slots: WeeklySlots = parse_weekly_slots(weekly_time_slots)
        self.duration_months = duration_months
        self.start_date = start_date
        self.end_date = end_date or add_months(start_date, duration_months)
        self.monthly_amount = monthly_amount
        self.status = SubscriptionStatus(status)
        self.created_at = created_at

    @classmethod
    def create(
        cls,
        user_id: str,
        facility_id: str,
        weekly_time_slots: Mapping,
        duration_months: int,
        start_date: date,
        monthly_amount: float,
    ) -> "Subscription":
        if not 1 <= duration_months <= 12:
            raise ValidationError("Duration must be between 1 and 12 months")
        if not parse_weekly_slots(weekly_time_slots):
            raise ValidationError("At least one time slot is required")
        if monthly_amount <= 0:
            raise ValidationError("Monthly amount must be positive")
        return cls(user_id, facility_id, weekly_time_slots, duration_months, start_date, monthly_amount)

    @property
    def total_amount(self) -> float:
        return round(self.monthly_amount * self.duration_months, 2)

    def slots_as_dict(self) -> Dict:
        return weekly_slots_to_dict(self.weekly_time_slots)

    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE

    def is_valid_at(self, instant: datetime) -> bool:
        return self.is_active() and self.start_date <= ensure_utc(instant).date() <= self.end_date

    def date_range_overlaps(self, start_date: date, end_date: date) -> bool:
        return self.start_date <= end_date and self.end_date >= start_date

    def covered_slot(self, instant: datetime) -> Optional[TimeSlot]:
        if not self.is_valid_at(instant):
            return None
        instant = ensure_utc(instant)
        at = time_of_day(instant)
        for slot in self.weekly_time_slots.get(day_of_week(instant), ()):
            if slot.contains(at):
                return slot
        return None

    def covers(self, instant: datetime) -> bool:
        return self.covered_slot(instant) is not None

    def remaining_days(self, as_of: Optional[datetime] = None) -> int:
        if not self.is_active():
            return 0
        today = ensure_utc(as_of or datetime.now(timezone.utc)).date()
        if today > self.end_date:
            return 0
        return (self.end_date - today).days

    def cancel(self):
        if not self.is_active():
            raise StateError("Only active subscriptions can be cancelled")
        self.status = SubscriptionStatus.CANCELLED

    def expire(self):
        if not self.is_active():
            raise StateError("Only active subscriptions can be expired")
        self.status = SubscriptionStatus.EXPIRED


class ParkingSession:
    def __init__(
        self,
        user_id: str,
        facility_id: str,
        start_time: datetime,
        reservation_id: Optional[str] = None,
        id: Optional[str] = None,
        end_time: Optional[datetime] = None,
        total_amount: Optional[float] = None,
        penalty_amount: float = 0.0,
        status: SessionStatus = SessionStatus.ACTIVE,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.user_id = user_id
        self.facility_id = facility_id
        self.reservation_id = reservation_id
        self.start_time = start_time
        self.end_time = end_time
        self.total_amount = total_amount
        self.penalty_amount = penalty_amount
        self.status = SessionStatus(status)
        self.created_at = created_at

    @classmethod
    def start(
        cls, user_id: str, facility_id: str, start_time: datetime, reservation_id: Optional[str] = None
    ) -> "ParkingSession":
        return cls(user_id, facility_id, ensure_utc(start_time), reservation_id=reservation_id)

    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def has_reservation(self) -> bool:
        return self.reservation_id is not None

    @property
    def duration_minutes(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return int(duration_minutes(self.start_time, self.end_time))

    def elapsed_minutes(self, as_of: datetime) -> int:
        return max(0, int(duration_minutes(self.start_time, ensure_utc(as_of))))

    def _finish(self, end_time: datetime, total_amount: float):
        if not self.is_active():
            raise StateError(f"Cannot exit: session is not active (status: {self.status.value})")
        end_time = ensure_utc(end_time)
        if end_time <= self.start_time:
            raise ValidationError("End time must be after start time")
        if total_amount < 0:
            raise ValidationError("Total amount cannot be negative")
        self.end_time = end_time
        self.total_amount = total_amount

    def complete(self, end_time: datetime, total_amount: float):
        self._finish(end_time, total_amount)
        self.penalty_amount = 0.0
        self.status = SessionStatus.COMPLETED

    def mark_overstayed(self, end_time: datetime, total_amount: float, penalty_amount: float):
        self._finish(end_time, total_amount)
        self.penalty_amount = penalty_amount
        self.status = SessionStatus.OVERSTAYED
