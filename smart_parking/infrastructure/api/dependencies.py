"""FastAPI providers wiring one AsyncSession per request into the use cases."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smart_parking.application.services.analytics_service import CalculateMonthlyRevenue, GetFacilityStatistics
from smart_parking.application.services.availability_service import AvailabilityService, CheckAvailability
from smart_parking.application.services.facility_service import (
    CreateFacility,
    DeleteFacility,
    SearchFacilitiesByLocation,
    UpdateFacility,
    UpdateFacilityRates,
)
from smart_parking.application.services.reservation_service import (
    CancelReservation,
    CreateReservation,
    GenerateInvoice,
)
from smart_parking.application.services.session_service import EnterParking, ExitParking
from smart_parking.application.services.subscription_service import (
    CancelSubscription,
    CreateSubscription,
    GetActiveSubscriptionsAt,
    GetFacilitySubscriptions,
    ValidateSubscriptionSlots,
)
from smart_parking.application.services.unauthorized_detector import ListUnauthorizedUsers
from smart_parking.infrastructure.persistence.database import get_async_db
from smart_parking.infrastructure.persistence.sqlalchemy_repositories import (
    SQLAlchemyFacilityRepository,
    SQLAlchemyParkingSessionRepository,
    SQLAlchemyReservationRepository,
    SQLAlchemySubscriptionRepository,
    SQLAlchemyUnitOfWork,
    SQLAlchemyUserRepository,
)


class Repositories:
    def __init__(self, db: AsyncSession):
        self.uow = SQLAlchemyUnitOfWork(db)
        self.users = SQLAlchemyUserRepository(db)
        self.facilities = SQLAlchemyFacilityRepository(db)
        self.reservations = SQLAlchemyReservationRepository(db)
        self.subscriptions = SQLAlchemySubscriptionRepository(db)
        self.sessions = SQLAlchemyParkingSessionRepository(db)

    def availability(self) -> AvailabilityService:
        return AvailabilityService(self.facilities, self.reservations, self.subscriptions, self.sessions)


def get_repositories(db: AsyncSession = Depends(get_async_db)) -> Repositories:
    return Repositories(db)


# Facilities

def get_create_facility(repos: Repositories = Depends(get_repositories)) -> CreateFacility:
    return CreateFacility(repos.uow, repos.users, repos.facilities)


def get_update_facility(repos: Repositories = Depends(get_repositories)) -> UpdateFacility:
    return UpdateFacility(repos.uow, repos.facilities)


def get_update_facility_rates(repos: Repositories = Depends(get_repositories)) -> UpdateFacilityRates:
    return UpdateFacilityRates(repos.uow, repos.facilities)


def get_delete_facility(repos: Repositories = Depends(get_repositories)) -> DeleteFacility:
    return DeleteFacility(repos.uow, repos.facilities)


def get_search_facilities(repos: Repositories = Depends(get_repositories)) -> SearchFacilitiesByLocation:
    return SearchFacilitiesByLocation(repos.facilities, repos.availability())


def get_check_availability(repos: Repositories = Depends(get_repositories)) -> CheckAvailability:
    return CheckAvailability(repos.availability())


def get_list_unauthorized_users(repos: Repositories = Depends(get_repositories)) -> ListUnauthorizedUsers:
    return ListUnauthorizedUsers(repos.facilities, repos.reservations, repos.subscriptions, repos.sessions)


def get_facility_statistics(repos: Repositories = Depends(get_repositories)) -> GetFacilityStatistics:
    return GetFacilityStatistics(repos.facilities, repos.reservations, repos.subscriptions, repos.sessions)


def get_monthly_revenue(repos: Repositories = Depends(get_repositories)) -> CalculateMonthlyRevenue:
    return CalculateMonthlyRevenue(repos.facilities, repos.reservations, repos.subscriptions, repos.sessions)


# Reservations

def get_create_reservation(repos: Repositories = Depends(get_repositories)) -> CreateReservation:
    return CreateReservation(repos.uow, repos.users, repos.facilities, repos.reservations, repos.availability())


def get_cancel_reservation(repos: Repositories = Depends(get_repositories)) -> CancelReservation:
    return CancelReservation(repos.uow, repos.reservations, repos.facilities)


def get_generate_invoice(repos: Repositories = Depends(get_repositories)) -> GenerateInvoice:
    return GenerateInvoice(repos.reservations, repos.facilities, repos.sessions)


# Subscriptions

def get_create_subscription(repos: Repositories = Depends(get_repositories)) -> CreateSubscription:
    return CreateSubscription(repos.uow, repos.users, repos.facilities, repos.subscriptions, repos.availability())


def get_validate_subscription_slots(repos: Repositories = Depends(get_repositories)) -> ValidateSubscriptionSlots:
    return ValidateSubscriptionSlots(repos.facilities, repos.availability())


def get_active_subscriptions_at(repos: Repositories = Depends(get_repositories)) -> GetActiveSubscriptionsAt:
    return GetActiveSubscriptionsAt(repos.facilities, repos.subscriptions)


def get_facility_subscriptions(repos: Repositories = Depends(get_repositories)) -> GetFacilitySubscriptions:
    return GetFacilitySubscriptions(repos.facilities, repos.subscriptions)


def get_cancel_subscription(repos: Repositories = Depends(get_repositories)) -> CancelSubscription:
    return CancelSubscription(repos.uow, repos.subscriptions)


# Sessions

def get_enter_parking(repos: Repositories = Depends(get_repositories)) -> EnterParking:
    return EnterParking(
        repos.uow, repos.users, repos.facilities, repos.reservations, repos.subscriptions, repos.sessions
    )


def get_exit_parking(repos: Repositories = Depends(get_repositories)) -> ExitParking:
    return ExitParking(repos.uow, repos.facilities, repos.reservations, repos.sessions)
