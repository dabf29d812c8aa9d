from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from smart_parking.application.dto import (
    CalculateMonthlyRevenueRequest,
    CheckAvailabilityRequest,
    CheckAvailabilityResponse,
    CreateFacilityRequest,
    DeleteFacilityRequest,
    FacilityResponse,
    FacilityStatisticsResponse,
    GetActiveSubscriptionsAtRequest,
    GetActiveSubscriptionsAtResponse,
    GetFacilityStatisticsRequest,
    GetFacilitySubscriptionsRequest,
    GetFacilitySubscriptionsResponse,
    ListUnauthorizedUsersRequest,
    ListUnauthorizedUsersResponse,
    MonthlyRevenueResponse,
    SearchFacilitiesRequest,
    SearchFacilitiesResponse,
    UpdateFacilityRatesRequest,
    UpdateFacilityRequest,
)
from smart_parking.application.services.analytics_service import CalculateMonthlyRevenue, GetFacilityStatistics
from smart_parking.application.services.availability_service import CheckAvailability
from smart_parking.application.services.facility_service import (
    CreateFacility,
    DeleteFacility,
    SearchFacilitiesByLocation,
    UpdateFacility,
    UpdateFacilityRates,
)
from smart_parking.application.services.subscription_service import GetActiveSubscriptionsAt, GetFacilitySubscriptions
from smart_parking.application.services.unauthorized_detector import ListUnauthorizedUsers
from smart_parking.infrastructure.api import dependencies as deps
from smart_parking.infrastructure.api.schemas.requests import FacilityUpdateBody, RateUpdateBody

router = APIRouter(prefix="/api/facilities", tags=["facilities"])


@router.post("", response_model=FacilityResponse, status_code=status.HTTP_201_CREATED)
async def create_facility(
    request: CreateFacilityRequest,
    use_case: CreateFacility = Depends(deps.get_create_facility),
):
    return await use_case.execute(request)


@router.get("/search", response_model=SearchFacilitiesResponse)
async def search_facilities(
    latitude: float,
    longitude: float,
    radius_km: float = 5.0,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    max_hourly_rate: Optional[float] = None,
    minimum_spaces: Optional[int] = None,
    limit: int = 10,
    use_case: SearchFacilitiesByLocation = Depends(deps.get_search_facilities),
):
    return await use_case.execute(
        SearchFacilitiesRequest(
            latitude=latitude,
            longitude=longitude,
            radius_km=radius_km,
            start_time=start_time,
            end_time=end_time,
            max_hourly_rate=max_hourly_rate,
            minimum_spaces=minimum_spaces,
            limit=limit,
        )
    )


@router.patch("/{facility_id}", response_model=FacilityResponse)
async def update_facility(
    facility_id: str,
    body: FacilityUpdateBody,
    use_case: UpdateFacility = Depends(deps.get_update_facility),
):
    return await use_case.execute(UpdateFacilityRequest(facility_id=facility_id, **body.model_dump()))


@router.put("/{facility_id}/rates", response_model=FacilityResponse)
async def update_facility_rates(
    facility_id: str,
    body: RateUpdateBody,
    use_case: UpdateFacilityRates = Depends(deps.get_update_facility_rates),
):
    return await use_case.execute(UpdateFacilityRatesRequest(facility_id=facility_id, **body.model_dump()))


@router.delete("/{facility_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_facility(
    facility_id: str,
    owner_id: str,
    use_case: DeleteFacility = Depends(deps.get_delete_facility),
):
    await use_case.execute(DeleteFacilityRequest(facility_id=facility_id, owner_id=owner_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{facility_id}/availability", response_model=CheckAvailabilityResponse)
async def check_availability(
    facility_id: str,
    at: datetime,
    use_case: CheckAvailability = Depends(deps.get_check_availability),
):
    return await use_case.execute(CheckAvailabilityRequest(facility_id=facility_id, at=at))


@router.get("/{facility_id}/unauthorized", response_model=ListUnauthorizedUsersResponse)
async def list_unauthorized_users(
    facility_id: str,
    as_of: Optional[datetime] = None,
    use_case: ListUnauthorizedUsers = Depends(deps.get_list_unauthorized_users),
):
    return await use_case.execute(ListUnauthorizedUsersRequest(facility_id=facility_id, as_of=as_of))


@router.get("/{facility_id}/subscriptions", response_model=GetFacilitySubscriptionsResponse)
async def get_facility_subscriptions(
    facility_id: str,
    active_only: bool = False,
    use_case: GetFacilitySubscriptions = Depends(deps.get_facility_subscriptions),
):
    return await use_case.execute(GetFacilitySubscriptionsRequest(facility_id=facility_id, active_only=active_only))


@router.get("/{facility_id}/subscriptions/active", response_model=GetActiveSubscriptionsAtResponse)
async def get_active_subscriptions_at(
    facility_id: str,
    at: datetime,
    use_case: GetActiveSubscriptionsAt = Depends(deps.get_active_subscriptions_at),
):
    return await use_case.execute(GetActiveSubscriptionsAtRequest(facility_id=facility_id, at=at))


@router.get("/{facility_id}/statistics", response_model=FacilityStatisticsResponse)
async def get_facility_statistics(
    facility_id: str,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    use_case: GetFacilityStatistics = Depends(deps.get_facility_statistics),
):
    return await use_case.execute(
        GetFacilityStatisticsRequest(facility_id=facility_id, from_date=from_date, to_date=to_date)
    )


@router.get("/{facility_id}/revenue/{year}/{month}", response_model=MonthlyRevenueResponse)
async def get_monthly_revenue(
    facility_id: str,
    year: int,
    month: int,
    use_case: CalculateMonthlyRevenue = Depends(deps.get_monthly_revenue),
):
    return await use_case.execute(CalculateMonthlyRevenueRequest(facility_id=facility_id, year=year, month=month))
