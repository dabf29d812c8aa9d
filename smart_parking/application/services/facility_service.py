from datetime import datetime, timezone

from loguru import logger

from smart_parking.application.dto import (
    CreateFacilityRequest,
    DeleteFacilityRequest,
    FacilityResponse,
    FacilitySearchResult,
    SearchFacilitiesRequest,
    SearchFacilitiesResponse,
    UpdateFacilityRatesRequest,
    UpdateFacilityRequest,
)
from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractUnitOfWork,
    AbstractUserRepository,
)
from smart_parking.application.services.availability_service import AvailabilityService
from smart_parking.config.settings_env import settings
from smart_parking.domain.entities import Facility
from smart_parking.domain.errors import AuthorizationError, NotFoundError, ValidationError
from smart_parking.domain.value_objects import GpsCoordinates
from smart_parking.shared.time_utils import ensure_utc

MAX_SEARCH_RESULTS = 50


def to_facility_response(facility: Facility) -> FacilityResponse:
    return FacilityResponse(
        id=facility.id,
        owner_id=facility.owner_id,
        latitude=facility.latitude,
        longitude=facility.longitude,
        total_spaces=facility.total_spaces,
        available_spots=facility.available_spots,
        hourly_rate=facility.hourly_rate,
        opening_hours=facility.opening_hours.to_dict(),
    )


async def get_owned_facility(facility_repo: AbstractFacilityRepository, facility_id: str, owner_id: str) -> Facility:
    facility = await facility_repo.get_by_id(facility_id)
    if facility is None:
        raise NotFoundError(f"Facility not found: {facility_id}")
    if facility.owner_id != owner_id:
        raise AuthorizationError(f"User {owner_id} is not authorized to manage facility {facility_id}")
    return facility


class CreateFacility:
    def __init__(self, uow: AbstractUnitOfWork, user_repo: AbstractUserRepository, facility_repo: AbstractFacilityRepository):
        self.uow = uow
        self.user_repo = user_repo
        self.facility_repo = facility_repo

    async def execute(self, request: CreateFacilityRequest) -> FacilityResponse:
        facility = Facility.create(
            owner_id=request.owner_id,
            latitude=request.latitude,
            longitude=request.longitude,
            total_spaces=request.total_spaces,
            hourly_rate=request.hourly_rate,
            opening_hours=request.opening_hours,
        )
        if not await self.user_repo.exists(request.owner_id):
            raise NotFoundError(f"Owner not found: {request.owner_id}")

        facility = await self.facility_repo.add(facility)
        await self.uow.commit()
        logger.info(f"Facility {facility.id} created with {facility.total_spaces} spaces")
        return to_facility_response(facility)


class UpdateFacility:
    def __init__(self, uow: AbstractUnitOfWork, facility_repo: AbstractFacilityRepository):
        self.uow = uow
        self.facility_repo = facility_repo

    async def execute(self, request: UpdateFacilityRequest) -> FacilityResponse:
        facility = await get_owned_facility(self.facility_repo, request.facility_id, request.owner_id)
        if request.total_spaces is not None:
            facility.update_total_spaces(request.total_spaces)
        if request.hourly_rate is not None:
            facility.update_rate(request.hourly_rate)
        if request.opening_hours is not None:
            facility.update_opening_hours(request.opening_hours)

        facility = await self.facility_repo.update(facility)
        await self.uow.commit()
        logger.info(f"Facility {facility.id} updated")
        return to_facility_response(facility)


class UpdateFacilityRates:
    def __init__(self, uow: AbstractUnitOfWork, facility_repo: AbstractFacilityRepository):
        self.uow = uow
        self.facility_repo = facility_repo

    async def execute(self, request: UpdateFacilityRatesRequest) -> FacilityResponse:
        facility = await get_owned_facility(self.facility_repo, request.facility_id, request.owner_id)
        facility.update_rate(request.hourly_rate)
        facility = await self.facility_repo.update(facility)
        await self.uow.commit()
        logger.info(f"Facility {facility.id} hourly rate set to {facility.hourly_rate:.2f}")
        return to_facility_response(facility)


class DeleteFacility:
    def __init__(self, uow: AbstractUnitOfWork, facility_repo: AbstractFacilityRepository):
        self.uow = uow
        self.facility_repo = facility_repo

    async def execute(self, request: DeleteFacilityRequest):
        facility = await get_owned_facility(self.facility_repo, request.facility_id, request.owner_id)
        await self.facility_repo.delete(facility.id)
        await self.uow.commit()
        logger.info(f"Facility {facility.id} deleted by owner {request.owner_id}")


class SearchFacilitiesByLocation:
    def __init__(self, facility_repo: AbstractFacilityRepository, availability: AvailabilityService):
        self.facility_repo = facility_repo
        self.availability = availability

    @staticmethod
    def _validate(request: SearchFacilitiesRequest):
        if not 0 < request.radius_km <= settings.SEARCH_MAX_RADIUS_KM:
            raise ValidationError(f"Radius must be between 0 and {settings.SEARCH_MAX_RADIUS_KM:g} kilometers")
        if request.start_time and request.end_time and request.start_time >= request.end_time:
            raise ValidationError("Start time must be before end time")
        if request.max_hourly_rate is not None and request.max_hourly_rate < 0:
            raise ValidationError("Max hourly rate cannot be negative")
        if request.minimum_spaces is not None and request.minimum_spaces < 1:
            raise ValidationError("Minimum spaces must be at least 1")
        if not 1 <= request.limit <= MAX_SEARCH_RESULTS:
            raise ValidationError(f"Limit must be between 1 and {MAX_SEARCH_RESULTS}")

    async def execute(self, request: SearchFacilitiesRequest) -> SearchFacilitiesResponse:
        self._validate(request)
        point = GpsCoordinates(request.latitude, request.longitude)
        search_time = ensure_utc(request.start_time or datetime.now(timezone.utc))

        results = []
        for facility in await self.facility_repo.find_near_location(point, request.radius_km):
            if request.max_hourly_rate is not None and facility.hourly_rate > request.max_hourly_rate:
                continue
            if not facility.is_open_at(search_time):
                continue
            if request.start_time and request.end_time:
                if not await self.availability.window_has_space(
                    facility, request.start_time, request.end_time, request.minimum_spaces or 1
                ):
                    continue

            results.append(
                FacilitySearchResult(
                    facility_id=facility.id,
                    latitude=facility.latitude,
                    longitude=facility.longitude,
                    total_spaces=facility.total_spaces,
                    available_spaces=await self.availability.get_available_spaces(facility.id, search_time),
                    hourly_rate=facility.hourly_rate,
                    distance_km=round(facility.distance_to(point), 3),
                    is_open=True,
                    opening_hours=facility.opening_hours.to_dict(),
                )
            )

        results.sort(key=lambda r: r.distance_km)
        return SearchFacilitiesResponse(results=results[: request.limit], total_found=len(results))
