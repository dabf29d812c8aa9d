from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger

from smart_parking.application.dto import (
    ActiveSubscriptionInfo,
    CancelSubscriptionRequest,
    CreateSubscriptionRequest,
    GetActiveSubscriptionsAtRequest,
    GetActiveSubscriptionsAtResponse,
    GetFacilitySubscriptionsRequest,
    GetFacilitySubscriptionsResponse,
    SlotAvailability,
    SlotSchema,
    SubscriptionResponse,
    ValidateSubscriptionSlotsRequest,
    ValidateSubscriptionSlotsResponse,
)
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractSubscriptionRepository,
    AbstractUnitOfWork,
    AbstractUserRepository,
)
from smart_parking.application.services.admission import admit
from smart_parking.application.services.availability_service import AvailabilityService
from smart_parking.domain.entities import Facility, Subscription
from smart_parking.domain.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from smart_parking.domain.pricing import SubscriptionPricing
from smart_parking.domain.value_objects import WeeklySlots, parse_weekly_slots
from smart_parking.shared.time_utils import add_months, ensure_utc, format_hhmm


def parse_requested_slots(raw: Dict[int, List[SlotSchema]]) -> WeeklySlots:
    weekly = parse_weekly_slots(
        {day: [slot.model_dump() if isinstance(slot, SlotSchema) else slot for slot in slots]
         for day, slots in (raw or {}).items()}
    )
    if not weekly:
        raise ValidationError("At least one time slot is required")
    return weekly


def check_duration(duration_months: int):
    if not 1 <= duration_months <= 12:
        raise ValidationError("Duration must be between 1 and 12 months")


def to_subscription_response(subscription: Subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=subscription.id,
        user_id=subscription.user_id,
        facility_id=subscription.facility_id,
        weekly_time_slots=subscription.slots_as_dict(),
        duration_months=subscription.duration_months,
        start_date=subscription.start_date,
        end_date=subscription.end_date,
        monthly_amount=subscription.monthly_amount,
        total_amount=subscription.total_amount,
        status=subscription.status,
    )


class CreateSubscription:
    def __init__(
        self,
        uow: AbstractUnitOfWork,
        user_repo: AbstractUserRepository,
        facility_repo: AbstractFacilityRepository,
        subscription_repo: AbstractSubscriptionRepository,
        availability: AvailabilityService,
        pricing: Optional[SubscriptionPricing] = None,
    ):
        self.uow = uow
        self.user_repo = user_repo
        self.facility_repo = facility_repo
        self.subscription_repo = subscription_repo
        self.availability = availability
        self.pricing = pricing or SubscriptionPricing()

    async def execute(self, request: CreateSubscriptionRequest) -> SubscriptionResponse:
        if not request.user_id:
            raise ValidationError("User ID is required")
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        weekly = parse_requested_slots(request.weekly_time_slots)
        check_duration(request.duration_months)
        if request.start_date < datetime.now(timezone.utc).date():
            raise ValidationError("Start date cannot be in the past")

        if not await self.user_repo.exists(request.user_id):
            raise NotFoundError(f"User not found: {request.user_id}")
        if not await self.facility_repo.exists(request.facility_id):
            raise NotFoundError(f"Facility not found: {request.facility_id}")

        end_date = add_months(request.start_date, request.duration_months)

        async def attempt(facility: Facility) -> Subscription:
            for existing in await self.subscription_repo.find_active_for_user(request.user_id):
                if existing.facility_id == facility.id:
                    raise ConflictError("User already has an active subscription for this facility")

            for day, slots in weekly.items():
                for slot in slots:
                    if not facility.opening_hours.allows(day, slot):
                        raise ValidationError(f"Time slot {slot} on day {day} is outside opening hours")

            for day, slots in weekly.items():
                for slot in slots:
                    free = await self.availability.available_spaces_for_slot(
                        facility, day, slot, request.start_date, end_date
                    )
                    if free < 1:
                        logger.warning(f"Slot {slot} on day {day} is full at facility {facility.id}")
                        raise ConflictError(f"Time slot {slot} on day {day} has no available spaces")

            monthly = self.pricing.monthly_price(facility.hourly_rate, weekly)
            subscription = Subscription.create(
                request.user_id, facility.id, weekly, request.duration_months, request.start_date, monthly
            )
            return await self.subscription_repo.add(subscription)

        subscription = await admit(self.uow, self.facility_repo, request.facility_id, attempt)
        logger.info(
            f"Subscription {subscription.id} created for user {subscription.user_id} at facility "
            f"{subscription.facility_id} until {subscription.end_date}"
        )
        return to_subscription_response(subscription)


class ValidateSubscriptionSlots:
    """Dry run of CreateSubscription: reports per-slot availability without saving anything."""

    def __init__(
        self,
        facility_repo: AbstractFacilityRepository,
        availability: AvailabilityService,
        pricing: Optional[SubscriptionPricing] = None,
    ):
        self.facility_repo = facility_repo
        self.availability = availability
        self.pricing = pricing or SubscriptionPricing()

    async def execute(self, request: ValidateSubscriptionSlotsRequest) -> ValidateSubscriptionSlotsResponse:
        if not request.facility_id:
            raise ValidationError("Facility ID is required")
        weekly = parse_requested_slots(request.weekly_time_slots)
        check_duration(request.duration_months)

        facility = await self.facility_repo.get_by_id(request.facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {request.facility_id}")

        end_date = add_months(request.start_date, request.duration_months)
        slots, errors = [], []
        for day, day_slots in sorted(weekly.items()):
            for slot in day_slots:
                within = facility.opening_hours.allows(day, slot)
                free = 0
                if within:
                    free = await self.availability.available_spaces_for_slot(
                        facility, day, slot, request.start_date, end_date
                    )
                    if free < 1:
                        errors.append(f"Time slot {slot} on day {day} has no available spaces")
                else:
                    errors.append(f"Time slot {slot} on day {day} is outside opening hours")
                slots.append(
                    SlotAvailability(
                        day=day,
                        start=format_hhmm(slot.start),
                        end=format_hhmm(slot.end),
                        within_opening_hours=within,
                        available_spaces=free,
                    )
                )

        monthly = self.pricing.monthly_price(facility.hourly_rate, weekly)
        return ValidateSubscriptionSlotsResponse(
            facility_id=facility.id,
            is_valid=not errors,
            slots=slots,
            errors=errors,
            monthly_amount=monthly,
            total_amount=round(monthly * request.duration_months, 2),
            end_date=end_date,
        )


class GetActiveSubscriptionsAt:
    def __init__(self, facility_repo: AbstractFacilityRepository, subscription_repo: AbstractSubscriptionRepository):
        self.facility_repo = facility_repo
        self.subscription_repo = subscription_repo

    async def execute(self, request: GetActiveSubscriptionsAtRequest) -> GetActiveSubscriptionsAtResponse:
        if not await self.facility_repo.exists(request.facility_id):
            raise NotFoundError(f"Facility not found: {request.facility_id}")
        at = ensure_utc(request.at)

        found = []
        for subscription in await self.subscription_repo.find_active_for_facility(request.facility_id):
            slot = subscription.covered_slot(at)
            if slot is None:
                continue
            found.append(
                ActiveSubscriptionInfo(
                    subscription_id=subscription.id,
                    user_id=subscription.user_id,
                    start_date=subscription.start_date,
                    end_date=subscription.end_date,
                    covered_slot=slot.to_dict(),
                    monthly_amount=subscription.monthly_amount,
                    remaining_days=subscription.remaining_days(at),
                )
            )
        return GetActiveSubscriptionsAtResponse(
            facility_id=request.facility_id, at=at, count=len(found), subscriptions=found
        )


class GetFacilitySubscriptions:
    def __init__(self, facility_repo: AbstractFacilityRepository, subscription_repo: AbstractSubscriptionRepository):
        self.facility_repo = facility_repo
        self.subscription_repo = subscription_repo

    async def execute(self, request: GetFacilitySubscriptionsRequest) -> GetFacilitySubscriptionsResponse:
        if not await self.facility_repo.exists(request.facility_id):
            raise NotFoundError(f"Facility not found: {request.facility_id}")
        if request.active_only:
            subscriptions = await self.subscription_repo.find_active_for_facility(request.facility_id)
        else:
            subscriptions = await self.subscription_repo.find_by_facility(request.facility_id)
        return GetFacilitySubscriptionsResponse(
            facility_id=request.facility_id,
            count=len(subscriptions),
            subscriptions=[to_subscription_response(s) for s in subscriptions],
        )


class CancelSubscription:
    def __init__(self, uow: AbstractUnitOfWork, subscription_repo: AbstractSubscriptionRepository):
        self.uow = uow
        self.subscription_repo = subscription_repo

    async def execute(self, request: CancelSubscriptionRequest) -> SubscriptionResponse:
        subscription = await self.subscription_repo.get_by_id(request.subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription not found: {request.subscription_id}")
        if subscription.user_id != request.user_id:
            raise AuthorizationError("This subscription belongs to another user")
        subscription.cancel()
        subscription = await self.subscription_repo.update(subscription)
        await self.uow.commit()
        logger.info(f"Subscription {subscription.id} cancelled by user {request.user_id}")
        return to_subscription_response(subscription)
