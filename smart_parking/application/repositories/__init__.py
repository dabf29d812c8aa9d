from .abstract_repositories import (
    AbstractUnitOfWork,
    AbstractUserRepository,
    AbstractFacilityRepository,
    AbstractReservationRepository,
    AbstractSubscriptionRepository,
    AbstractParkingSessionRepository,
)

__all__ = [
    "AbstractUnitOfWork",
    "AbstractUserRepository",
    "AbstractFacilityRepository",
    "AbstractReservationRepository",
    "AbstractSubscriptionRepository",
    "AbstractParkingSessionRepository",
]
