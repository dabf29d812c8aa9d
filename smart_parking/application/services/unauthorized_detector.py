from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from smart_parking.application.dto import (
    ListUnauthorizedUsersRequest,
    ListUnauthorizedUsersResponse,
    UnauthorizedUserInfo,
)
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractParkingSessionRepository,
    AbstractReservationRepository,
    AbstractSubscriptionRepository,
)
from smart_parking.domain.common import UnauthorizedReason
from smart_parking.domain.errors import NotFoundError, ValidationError
from smart_parking.domain.pricing import PricingCalculator
from smart_parking.shared.time_utils import duration_minutes, ensure_utc


class ListUnauthorizedUsers:
    """Active sessions at a facility that nothing authorizes at ``as_of``."""

    def __init__(
        self,
        facility_repo: AbstractFacilityRepository,
        reservation_repo: AbstractReservationRepository,
        subscription_repo: AbstractSubscriptionRepository,
        session_repo: AbstractParkingSessionRepository,
        pricing: Optional[PricingCalculator] = None,
    ):
        self.facility_repo = facility_repo
        self.reservation_repo = reservation_repo
        self.subscription_repo = subscription_repo
        self.session_repo = session_repo
        self.pricing = pricing or PricingCalculator()

    async def execute(self, request: ListUnauthorizedUsersRequest) -> ListUnauthorizedUsersResponse:
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        facility = await self.facility_repo.get_by_id(request.facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {request.facility_id}")
        as_of = ensure_utc(request.as_of or datetime.now(timezone.utc))

        subscriptions = await self.subscription_repo.find_active_for_facility(facility.id)
        found = []
        for session in await self.session_repo.find_active_for_facility(facility.id):
            reservation = None
            if session.has_reservation():
                reservation = await self.reservation_repo.get_by_id(session.reservation_id)

            if reservation is not None:
                if as_of <= reservation.end_time:
                    continue
                reason = UnauthorizedReason.RESERVATION_EXPIRED
                overage = duration_minutes(reservation.end_time, as_of)
            else:
                if any(s.user_id == session.user_id and s.covers(as_of) for s in subscriptions):
                    continue
                reason = UnauthorizedReason.NO_RESERVATION_OR_SUBSCRIPTION
                overage = duration_minutes(session.start_time, as_of)

            found.append(
                UnauthorizedUserInfo(
                    session_id=session.id,
                    user_id=session.user_id,
                    start_time=session.start_time,
                    duration_minutes=session.elapsed_minutes(as_of),
                    reason=reason,
                    estimated_penalty=self.pricing.penalty_for_minutes(facility.hourly_rate, overage),
                )
            )

        if found:
            logger.warning(f"{len(found)} unauthorized session(s) at facility {facility.id} as of {as_of}")
        return ListUnauthorizedUsersResponse(
            facility_id=facility.id, as_of=as_of, count=len(found), unauthorized_users=found
        )
