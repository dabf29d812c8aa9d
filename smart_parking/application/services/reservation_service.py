from datetime import datetime, timedelta, timezone
from typing import Optional

from loguru import logger

from smart_parking.application.dto import (
    CancelReservationRequest,
    CreateReservationRequest,
    GenerateInvoiceRequest,
    InvoiceResponse,
    ReservationResponse,
)
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractParkingSessionRepository,
    AbstractReservationRepository,
    AbstractUnitOfWork,
    AbstractUserRepository,
)
from smart_parking.application.services.admission import admit
from smart_parking.application.services.availability_service import AvailabilityService
from smart_parking.config.settings_env import settings
from smart_parking.domain.entities import Facility, Reservation
from smart_parking.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from smart_parking.domain.pricing import PricingCalculator
from smart_parking.shared.time_utils import duration_minutes, ensure_utc


def to_reservation_response(reservation: Reservation) -> ReservationResponse:
    return ReservationResponse(
        id=reservation.id,
        user_id=reservation.user_id,
        facility_id=reservation.facility_id,
        start_time=reservation.start_time,
        end_time=reservation.end_time,
        total_amount=reservation.total_amount,
        duration_minutes=reservation.duration_minutes,
        status=reservation.status,
    )


def check_open_throughout(facility: Facility, start: datetime, end: datetime):
    """The facility must be open at start, at end and on every whole hour in between."""
    instant = start
    while instant < end:
        if not facility.is_open_at(instant):
            raise ValidationError(f"Facility is closed at {instant.isoformat()}")
        instant += timedelta(hours=1)
    if not facility.is_open_at(end):
        raise ValidationError(f"Facility is closed at {end.isoformat()}")


class CreateReservation:
    def __init__(
        self,
        uow: AbstractUnitOfWork,
        user_repo: AbstractUserRepository,
        facility_repo: AbstractFacilityRepository,
        reservation_repo: AbstractReservationRepository,
        availability: AvailabilityService,
        pricing: Optional[PricingCalculator] = None,
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.facility_repo = facility_repo
        self.reservation_repo = reservation_repo
        self.availability = availability
        self.pricing = pricing or PricingCalculator()

    def _validate(self, request: CreateReservationRequest, now: datetime):
        if not request.user_id:
            raise ValidationError("User ID is required")
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        start, end = ensure_utc(request.start_time), ensure_utc(request.end_time)
        if start >= end:
            raise ValidationError("Start time must be before end time")
        if start < now:
            raise ValidationError("Reservation start time cannot be in the past")
        minutes = duration_minutes(start, end)
        if minutes < settings.MIN_RESERVATION_MINUTES:
            raise ValidationError(f"Reservation must last at least {settings.MIN_RESERVATION_MINUTES} minutes")
        if minutes > settings.MAX_RESERVATION_HOURS * 60:
            raise ValidationError(f"Reservation cannot exceed {settings.MAX_RESERVATION_HOURS} hours")

    async def execute(self, request: CreateReservationRequest) -> ReservationResponse:
        now = datetime.now(timezone.utc)
        self._validate(request, now)
        start, end = ensure_utc(request.start_time), ensure_utc(request.end_time)

        if not await self.user_repo.exists(request.user_id):
            raise NotFoundError(f"User not found: {request.user_id}")
        if not await self.facility_repo.exists(request.facility_id):
            raise NotFoundError(f"Facility not found: {request.facility_id}")

        async def attempt(facility: Facility) -> Reservation:
            check_open_throughout(facility, start, end)
            if not await self.availability.window_has_space(facility, start, end, 1):
                logger.warning(f"No space at facility {facility.id} for {start} - {end}")
                raise ConflictError("No available spaces for the requested time period")

            amount = self.pricing.stay_price(facility.hourly_rate, start, end)
            reservation = Reservation.create(request.user_id, facility.id, start, end, amount, now=now)
            reservation.confirm()
            saved = await self.reservation_repo.add(reservation)
            facility.reserve_spot()
            return saved

        reservation = await admit(self.uow, self.facility_repo, request.facility_id, attempt)
        logger.info(
            f"Reservation {reservation.id} confirmed for user {reservation.user_id} at facility "
            f"{reservation.facility_id}: {start} - {end}, {reservation.total_amount:.2f} {settings.CURRENCY}"
        )
        return to_reservation_response(reservation)


class CancelReservation:
    def __init__(
        self,
        uow: AbstractUnitOfWork,
        reservation_repo: AbstractReservationRepository,
        facility_repo: AbstractFacilityRepository,
    ):
        self.uow = uow
        self.reservation_repo = reservation_repo
        self.facility_repo = facility_repo

    async def execute(self, request: CancelReservationRequest) -> ReservationResponse:
        reservation = await self.reservation_repo.get_by_id(request.reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation not found: {request.reservation_id}")
        if reservation.user_id != request.user_id:
            raise AuthorizationError("This reservation belongs to another user")
        if reservation.start_time <= datetime.now(timezone.utc):
            raise StateError("Cannot cancel a reservation that has already started")

        was_confirmed = reservation.is_active()
        reservation.cancel()
        reservation = await self.reservation_repo.update(reservation)

        if was_confirmed:
            await self.facility_repo.adjust_available_spots(reservation.facility_id, 1)

        await self.uow.commit()
        logger.info(f"Reservation {reservation.id} cancelled by user {request.user_id}")
        return to_reservation_response(reservation)


class GenerateInvoice:
    def __init__(
        self,
        reservation_repo: AbstractReservationRepository,
        facility_repo: AbstractFacilityRepository,
        session_repo: AbstractParkingSessionRepository,
        pricing: Optional[PricingCalculator] = None,
    ):
        self.reservation_repo = reservation_repo
        self.facility_repo = facility_repo
        self.session_repo = session_repo
        self.pricing = pricing or PricingCalculator()

    async def execute(self, request: GenerateInvoiceRequest) -> InvoiceResponse:
        if not request.reservation_id:
            raise ValidationError("Reservation ID is required")
        if not request.user_id:
            raise ValidationError("User ID is required")

        reservation = await self.reservation_repo.get_by_id(request.reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation not found: {request.reservation_id}")
        if reservation.user_id != request.user_id:
            raise AuthorizationError("User not authorized to access this reservation")

        facility = await self.facility_repo.get_by_id(reservation.facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {reservation.facility_id}")

        sessions = await self.session_repo.find_by_reservation(reservation.id)
        session = sessions[0] if sessions else None

        actual_minutes = reservation.duration_minutes
        overstay_minutes = 0
        overstay_amount = penalty = 0.0
        if session is not None and session.end_time is not None:
            actual_minutes = session.duration_minutes
            if session.end_time > reservation.end_time:
                overstay_minutes = int(duration_minutes(reservation.end_time, session.end_time))
                overstay_amount = self.pricing.price_for_minutes(facility.hourly_rate, overstay_minutes)
                penalty = self.pricing.base_penalty

        generated_at = datetime.now(timezone.utc)
        return InvoiceResponse(
            invoice_number=f"INV-{generated_at:%Y%m%d}-{reservation.id[:8].upper()}",
            reservation_id=reservation.id,
            user_id=reservation.user_id,
            facility_id=facility.id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            reserved_duration_minutes=reservation.duration_minutes,
            actual_duration_minutes=actual_minutes,
            hourly_rate=facility.hourly_rate,
            base_amount=reservation.total_amount,
            overstay_minutes=overstay_minutes,
            overstay_amount=overstay_amount,
            penalty_amount=penalty,
            total_amount=round(reservation.total_amount + overstay_amount + penalty, 2),
            currency=settings.CURRENCY,
            status=reservation.status,
            generated_at=generated_at,
        )
