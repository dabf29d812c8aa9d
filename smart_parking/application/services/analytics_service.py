import calendar
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List

from smart_parking.application.dto import (
    CalculateMonthlyRevenueRequest,
    FacilityStatisticsResponse,
    GetFacilityStatisticsRequest,
    MonthlyRevenueResponse,
)
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractParkingSessionRepository,
    AbstractReservationRepository,
    AbstractSubscriptionRepository,
)
from smart_parking.domain.common import DAY_NAMES, ReservationStatus, SessionStatus
from smart_parking.domain.entities import ParkingSession
from smart_parking.domain.errors import NotFoundError, ValidationError
from smart_parking.shared.time_utils import day_of_week, ensure_utc

DEFAULT_WINDOW_DAYS = 30
PEAK_HOURS_SHOWN = 3


def peak_hours(sessions: List[ParkingSession]) -> List[Dict]:
    counts = Counter(s.start_time.hour for s in sessions)
    return [
        {"hour": hour, "label": f"{hour:02d}:00-{hour + 1:02d}:00", "session_count": count}
        for hour, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:PEAK_HOURS_SHOWN]
    ]


def sessions_by_day(sessions: List[ParkingSession]) -> List[Dict]:
    counts = Counter(day_of_week(s.start_time) for s in sessions)
    return [{"day": day, "name": name, "session_count": counts.get(day, 0)} for day, name in enumerate(DAY_NAMES)]


class GetFacilityStatistics:
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

    async def execute(self, request: GetFacilityStatisticsRequest) -> FacilityStatisticsResponse:
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        if request.from_date and request.to_date and request.from_date > request.to_date:
            raise ValidationError("From date must be before to date")

        facility = await self.facility_repo.get_by_id(request.facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {request.facility_id}")

        to_date = ensure_utc(request.to_date or datetime.now(timezone.utc))
        from_date = ensure_utc(request.from_date or to_date - timedelta(days=DEFAULT_WINDOW_DAYS))

        reservations = [
            r for r in await self.reservation_repo.find_by_facility(facility.id)
            if from_date <= r.start_time <= to_date
        ]
        reservation_revenue = sum(
            r.total_amount for r in reservations
            if r.status in (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED)
        )

        sessions = [
            s for s in await self.session_repo.find_by_facility(facility.id)
            if from_date <= s.start_time <= to_date
        ]
        session_revenue = sum(s.total_amount or 0.0 for s in sessions)
        durations = [s.duration_minutes for s in sessions if s.duration_minutes is not None]

        subscriptions = [
            s for s in await self.subscription_repo.find_by_facility(facility.id) if s.is_valid_at(to_date)
        ]
        subscription_revenue = sum(s.monthly_amount for s in subscriptions)

        occupied = len(await self.session_repo.find_active_for_facility(facility.id))
        total_revenue = reservation_revenue + session_revenue + subscription_revenue
        days = max(1, (to_date - from_date).days)

        return FacilityStatisticsResponse(
            facility_id=facility.id,
            from_date=from_date,
            to_date=to_date,
            total_spaces=facility.total_spaces,
            currently_occupied=occupied,
            occupancy_rate=round(occupied / facility.total_spaces * 100, 2),
            total_reservations=len(reservations),
            completed_reservations=sum(1 for r in reservations if r.status == ReservationStatus.COMPLETED),
            cancelled_reservations=sum(1 for r in reservations if r.status == ReservationStatus.CANCELLED),
            total_sessions=len(sessions),
            overstayed_sessions=sum(1 for s in sessions if s.status == SessionStatus.OVERSTAYED),
            average_session_minutes=round(sum(durations) / len(durations), 2) if durations else 0.0,
            active_subscriptions=len(subscriptions),
            total_revenue=round(total_revenue, 2),
            average_daily_revenue=round(total_revenue / days, 2),
            peak_hours=peak_hours(sessions),
            sessions_by_day=sessions_by_day(sessions),
        )


class CalculateMonthlyRevenue:
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

    async def execute(self, request: CalculateMonthlyRevenueRequest) -> MonthlyRevenueResponse:
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        if not 2000 <= request.year <= 2100:
            raise ValidationError("Year must be between 2000 and 2100")
        if not 1 <= request.month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if not await self.facility_repo.exists(request.facility_id):
            raise NotFoundError(f"Facility not found: {request.facility_id}")

        first_day = date(request.year, request.month, 1)
        last_day = date(request.year, request.month, calendar.monthrange(request.year, request.month)[1])

        reservations = [
            r for r in await self.reservation_repo.find_by_facility(request.facility_id)
            if r.status in (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED)
            and first_day <= r.start_time.date() <= last_day
        ]

        session_revenue = penalty_revenue = 0.0
        session_count = 0
        for session in await self.session_repo.find_by_facility(request.facility_id):
            if session.status == SessionStatus.ACTIVE or not first_day <= session.start_time.date() <= last_day:
                continue
            penalty = session.penalty_amount or 0.0
            session_revenue += (session.total_amount or 0.0) - penalty
            penalty_revenue += penalty
            session_count += 1

        subscriptions = [
            s for s in await self.subscription_repo.find_by_facility(request.facility_id)
            if s.is_active() and s.date_range_overlaps(first_day, last_day)
        ]

        reservation_revenue = round(sum(r.total_amount for r in reservations), 2)
        subscription_revenue = round(sum(s.monthly_amount for s in subscriptions), 2)
        session_revenue, penalty_revenue = round(session_revenue, 2), round(penalty_revenue, 2)
        return MonthlyRevenueResponse(
            facility_id=request.facility_id,
            year=request.year,
            month=request.month,
            reservation_revenue=reservation_revenue,
            session_revenue=session_revenue,
            subscription_revenue=subscription_revenue,
            penalty_revenue=penalty_revenue,
            total_revenue=round(reservation_revenue + session_revenue + subscription_revenue + penalty_revenue, 2),
            reservation_count=len(reservations),
            session_count=session_count,
            subscription_count=len(subscriptions),
        )
