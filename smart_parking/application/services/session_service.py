from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from smart_parking.application.dto import (
    EnterParkingRequest,
    EnterParkingResponse,
    ExitParkingRequest,
    ExitParkingResponse,
)
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractParkingSessionRepository,
    AbstractReservationRepository,
    AbstractSubscriptionRepository,
    AbstractUnitOfWork,
    AbstractUserRepository,
)
from smart_parking.domain.authorization import ReservationAuthorization, SubscriptionAuthorization, resolve_authorization
from smart_parking.domain.common import ReservationStatus, SessionStatus
from smart_parking.domain.entities import ParkingSession
from smart_parking.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from smart_parking.domain.pricing import PricingCalculator
from smart_parking.shared.time_utils import ensure_utc


class EnterParking:
    def __init__(
        self,
        uow: AbstractUnitOfWork,
        user_repo: AbstractUserRepository,
        facility_repo: AbstractFacilityRepository,
        reservation_repo: AbstractReservationRepository,
        subscription_repo: AbstractSubscriptionRepository,
        session_repo: AbstractParkingSessionRepository,
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.facility_repo = facility_repo
        self.reservation_repo = reservation_repo
        self.subscription_repo = subscription_repo
        self.session_repo = session_repo

    async def execute(self, request: EnterParkingRequest) -> EnterParkingResponse:
        if not request.user_id:
            raise ValidationError("User ID is required")
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        entry_time = ensure_utc(request.entry_time or datetime.now(timezone.utc))

        if not await self.user_repo.exists(request.user_id):
            raise NotFoundError(f"User not found: {request.user_id}")
        facility = await self.facility_repo.get_by_id(request.facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {request.facility_id}")
        if not facility.is_open_at(entry_time):
            raise ValidationError(f"Facility is closed at {entry_time.isoformat()}")

        if await self.session_repo.find_active_for_user_and_facility(request.user_id, facility.id):
            raise ConflictError("User already has an active session at this facility")

        authorization = resolve_authorization(
            request.user_id,
            facility.id,
            entry_time,
            await self.reservation_repo.find_active_for_facility(facility.id),
            await self.subscription_repo.find_active_for_user(request.user_id),
        )
        if authorization is None:
            logger.warning(f"Entry refused for user {request.user_id} at facility {facility.id}: no authorization")
            raise AuthorizationError("No valid reservation or subscription for this facility at this time")

        reservation_id = subscription_id = authorized_until = None
        if isinstance(authorization, ReservationAuthorization):
            reservation_id = authorization.reservation_id
            authorized_until = authorization.authorized_until
        elif isinstance(authorization, SubscriptionAuthorization):
            subscription_id = authorization.subscription_id

        session = ParkingSession.start(request.user_id, facility.id, entry_time, reservation_id=reservation_id)
        session = await self.session_repo.add(session)
        await self.uow.commit()

        logger.info(f"User {session.user_id} entered facility {facility.id} (session {session.id})")
        return EnterParkingResponse(
            session_id=session.id,
            user_id=session.user_id,
            facility_id=session.facility_id,
            reservation_id=reservation_id,
            subscription_id=subscription_id,
            start_time=session.start_time,
            authorized_until=authorized_until,
            status=session.status,
        )


class ExitParking:
    def __init__(
        self,
        uow: AbstractUnitOfWork,
        facility_repo: AbstractFacilityRepository,
        reservation_repo: AbstractReservationRepository,
        session_repo: AbstractParkingSessionRepository,
        pricing: Optional[PricingCalculator] = None,
    ):
        self.uow = uow
        self.facility_repo = facility_repo
        self.reservation_repo = reservation_repo
        self.session_repo = session_repo
        self.pricing = pricing or PricingCalculator()

    async def execute(self, request: ExitParkingRequest) -> ExitParkingResponse:
        if not request.session_id:
            raise ValidationError("Session ID is required")
        session = await self.session_repo.get_by_id(request.session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {request.session_id}")
        if not session.is_active():
            raise StateError(f"Cannot exit: session is not active (status: {session.status.value})")

        exit_time = ensure_utc(request.exit_time or datetime.now(timezone.utc))
        if exit_time <= session.start_time:
            raise ValidationError("Exit time must be after entry time")

        facility = await self.facility_repo.get_by_id(session.facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {session.facility_id}")

        base = self.pricing.stay_price(facility.hourly_rate, session.start_time, exit_time)
        reservation = None
        if session.has_reservation():
            reservation = await self.reservation_repo.get_by_id(session.reservation_id)

        penalty = 0.0
        if reservation is not None and exit_time > reservation.end_time:
            penalty = self.pricing.overstay_penalty(facility.hourly_rate, reservation.end_time, exit_time)
            session.mark_overstayed(exit_time, round(base + penalty, 2), penalty)
        else:
            session.complete(exit_time, base)
        session = await self.session_repo.update(session)

        if reservation is not None and reservation.status == ReservationStatus.CONFIRMED:
            reservation.complete()
            await self.reservation_repo.update(reservation)
            await self.facility_repo.adjust_available_spots(facility.id, 1)

        await self.uow.commit()

        if session.status == SessionStatus.OVERSTAYED:
            logger.warning(f"Session {session.id} overstayed: penalty {penalty:.2f}")
        logger.info(f"Session {session.id} closed. Amount: {session.total_amount:.2f}")
        return ExitParkingResponse(
            session_id=session.id,
            user_id=session.user_id,
            facility_id=session.facility_id,
            start_time=session.start_time,
            end_time=session.end_time,
            duration_minutes=session.duration_minutes,
            base_amount=base,
            overstay_penalty=penalty,
            total_amount=session.total_amount,
            was_overstayed=session.status == SessionStatus.OVERSTAYED,
            status=session.status,
        )
