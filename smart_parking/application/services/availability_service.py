"""Free-space computation for a facility.

Occupancy at an instant comes from three sources: confirmed reservations,
active subscriptions covering the instant, and active parking sessions. A
session usually belongs to one of the bookings, so the two are not added:

    occupied  = max(reserved + subscribed, active_sessions)
    available = max(0, total_spaces - occupied)
"""
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from smart_parking.application.dto import CheckAvailabilityRequest, CheckAvailabilityResponse
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractParkingSessionRepository,
    AbstractReservationRepository,
    AbstractSubscriptionRepository,
)
from smart_parking.domain.entities import Facility, ParkingSession, Reservation, Subscription
from smart_parking.domain.errors import NotFoundError, ValidationError
from smart_parking.domain.value_objects import TimeSlot
from smart_parking.shared.time_utils import combine, day_of_week, ensure_utc, format_hhmm, time_of_day

Interval = Tuple[float, float]


def peak_concurrency(intervals: Iterable[Interval]) -> int:
    """Largest number of half-open intervals that overlap at one point."""
    events = []
    for start, end in intervals:
        if start < end:
            events.append((start, 1))
            events.append((end, -1))
    # Ends sort before starts at the same point, so touching intervals never stack
    events.sort()
    peak = current = 0
    for _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak


def _occupies(subscription: Subscription, instant: datetime) -> bool:
    """Half-open cousin of Subscription.covers, used when sampling windows."""
    if not subscription.is_valid_at(instant):
        return False
    at = time_of_day(instant)
    return any(slot.start <= at < slot.end for slot in subscription.weekly_time_slots.get(day_of_week(instant), ()))


def _minutes_into_day(instant: datetime, day: date) -> float:
    return (instant - combine(day, datetime.min.time())).total_seconds() / 60


class AvailabilityService:
    def __init__(
        self,
        facility_repo: AbstractFacilityRepository,
        reservation_repo: AbstractReservationRepository,
        subscription_repo: AbstractSubscriptionRepository,
        session_repo: AbstractParkingSessionRepository,
    ):
        self.facility_repo = facility_repo
        self.reservation_repo = reservation_repo
        self.subscription_repo = subscription_repo
        self.session_repo = session_repo

    async def _get_facility(self, facility_id: str) -> Facility:
        facility = await self.facility_repo.get_by_id(facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {facility_id}")
        return facility

    async def _load_sources(
        self, facility_id: str
    ) -> Tuple[List[Reservation], List[Subscription], List[ParkingSession]]:
        reservations = await self.reservation_repo.find_active_for_facility(facility_id)
        subscriptions = await self.subscription_repo.find_active_for_facility(facility_id)
        sessions = await self.session_repo.find_active_for_facility(facility_id)
        return reservations, subscriptions, sessions

    @staticmethod
    def _counts_at(
        instant: datetime,
        reservations: Sequence[Reservation],
        subscriptions: Sequence[Subscription],
        sessions: Sequence[ParkingSession],
    ) -> Tuple[int, int, int]:
        reserved = sum(1 for r in reservations if r.is_active_at(instant))
        subscribed = sum(1 for s in subscriptions if s.covers(instant))
        return reserved, subscribed, sum(1 for s in sessions if s.is_active())

    @staticmethod
    def _free(total_spaces: int, reserved: int, subscribed: int, active_sessions: int) -> int:
        if min(reserved, subscribed, active_sessions) < 0:
            raise RuntimeError("Occupancy counts cannot be negative")
        return max(0, total_spaces - max(reserved + subscribed, active_sessions))

    async def get_available_spaces(self, facility_id: str, instant: datetime) -> int:
        facility = await self._get_facility(facility_id)
        instant = ensure_utc(instant)
        counts = self._counts_at(instant, *await self._load_sources(facility.id))
        return self._free(facility.total_spaces, *counts)

    async def has_available_spaces_during(
        self, facility_id: str, start: datetime, end: datetime, min_spaces: int = 1
    ) -> bool:
        facility = await self._get_facility(facility_id)
        return await self.window_has_space(facility, start, end, min_spaces)

    async def window_has_space(self, facility: Facility, start: datetime, end: datetime, min_spaces: int = 1) -> bool:
        """True when at least ``min_spaces`` stay free at every instant of [start, end).

        Occupancy only rises where a reservation or a subscription slot begins,
        so sampling the window start and those boundaries is enough.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        if start >= end:
            raise ValidationError("Start time must be before end time")
        reservations, subscriptions, sessions = await self._load_sources(facility.id)
        active_sessions = sum(1 for s in sessions if s.is_active())

        for sample in self._sample_points(start, end, reservations, subscriptions):
            reserved = sum(1 for r in reservations if r.start_time <= sample < r.end_time)
            subscribed = sum(1 for s in subscriptions if _occupies(s, sample))
            if self._free(facility.total_spaces, reserved, subscribed, active_sessions) < min_spaces:
                return False
        return True

    @staticmethod
    def _sample_points(
        start: datetime,
        end: datetime,
        reservations: Sequence[Reservation],
        subscriptions: Sequence[Subscription],
    ) -> List[datetime]:
        points = {start}
        points.update(r.start_time for r in reservations if start < r.start_time < end)

        day = start.date()
        while day <= end.date():
            weekday = day_of_week(day)
            for subscription in subscriptions:
                if not subscription.start_date <= day <= subscription.end_date:
                    continue
                for slot in subscription.weekly_time_slots.get(weekday, ()):
                    occurrence = combine(day, slot.start)
                    if start < occurrence < end:
                        points.add(occurrence)
            day += timedelta(days=1)
        return sorted(points)

    async def get_availability_report(self, facility_id: str, instant: datetime) -> Dict:
        facility = await self._get_facility(facility_id)
        instant = ensure_utc(instant)
        reserved, subscribed, active = self._counts_at(instant, *await self._load_sources(facility.id))
        hours = facility.opening_hours.for_day(day_of_week(instant))
        return {
            "facility_id": facility.id,
            "at": instant,
            "total_spaces": facility.total_spaces,
            "available_spaces": self._free(facility.total_spaces, reserved, subscribed, active),
            "reserved_spaces": reserved,
            "subscribed_spaces": subscribed,
            "active_sessions": active,
            "is_open": facility.is_open_at(instant),
            "hourly_rate": facility.hourly_rate,
            "opening_time": format_hhmm(hours.start) if hours else None,
            "closing_time": format_hhmm(hours.end) if hours else None,
        }

    async def available_spaces_for_slot(
        self,
        facility: Facility,
        day: int,
        slot: TimeSlot,
        start_date: date,
        end_date: date,
        exclude_subscription_id: Optional[str] = None,
    ) -> int:
        """Spaces left for a weekly slot on ``day`` over the whole date range.

        Peak concurrency is taken over every subscription slot overlapping the
        requested one, plus the confirmed reservations falling on any concrete
        occurrence of the slot.
        """
        subscriptions = [
            s
            for s in await self.subscription_repo.find_active_for_facility(facility.id)
            if s.id != exclude_subscription_id and s.date_range_overlaps(start_date, end_date)
        ]
        recurring: List[Interval] = []
        for subscription in subscriptions:
            for other in subscription.weekly_time_slots.get(day, ()):
                if other.overlaps(slot):
                    recurring.append(
                        (_slot_minute(max(other.start, slot.start)), _slot_minute(min(other.end, slot.end)))
                    )

        by_occurrence: Dict[date, List[Interval]] = {}
        for reservation in await self.reservation_repo.find_active_for_facility(facility.id):
            occurrence_day = reservation.start_time.date()
            while occurrence_day <= reservation.end_time.date():
                if start_date <= occurrence_day <= end_date and day_of_week(occurrence_day) == day:
                    slot_start = combine(occurrence_day, slot.start)
                    slot_end = combine(occurrence_day, slot.end)
                    if reservation.overlaps(slot_start, slot_end):
                        by_occurrence.setdefault(occurrence_day, []).append(
                            (
                                _minutes_into_day(max(reservation.start_time, slot_start), occurrence_day),
                                _minutes_into_day(min(reservation.end_time, slot_end), occurrence_day),
                            )
                        )
                occurrence_day += timedelta(days=1)

        peak = peak_concurrency(recurring)
        for intervals in by_occurrence.values():
            peak = max(peak, peak_concurrency(recurring + intervals))
        return max(0, facility.total_spaces - peak)


def _slot_minute(at) -> int:
    return at.hour * 60 + at.minute


class CheckAvailability:
    def __init__(self, availability: AvailabilityService):
        self.availability = availability

    async def execute(self, request: CheckAvailabilityRequest) -> CheckAvailabilityResponse:
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        report = await self.availability.get_availability_report(request.facility_id, request.at)
        return CheckAvailabilityResponse(**report)
