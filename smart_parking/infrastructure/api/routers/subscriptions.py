from fastapi import APIRouter, Depends, status

from smart_parking.application.dto import (
    CancelSubscriptionRequest,
    CreateSubscriptionRequest,
    SubscriptionResponse,
    ValidateSubscriptionSlotsRequest,
    ValidateSubscriptionSlotsResponse,
)
from smart_parking.application.services.subscription_service import (
    CancelSubscription,
    CreateSubscription,
    ValidateSubscriptionSlots,
)
from smart_parking.infrastructure.api import dependencies as deps
from smart_parking.infrastructure.api.schemas.requests import UserBody

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    request: CreateSubscriptionRequest,
    use_case: CreateSubscription = Depends(deps.get_create_subscription),
):
    return await use_case.execute(request)


@router.post("/validate", response_model=ValidateSubscriptionSlotsResponse)
async def validate_subscription_slots(
    request: ValidateSubscriptionSlotsRequest,
    use_case: ValidateSubscriptionSlots = Depends(deps.get_validate_subscription_slots),
):
    return await use_case.execute(request)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: str,
    body: UserBody,
    use_case: CancelSubscription = Depends(deps.get_cancel_subscription),
):
    return await use_case.execute(CancelSubscriptionRequest(subscription_id=subscription_id, user_id=body.user_id))
