from .sqlalchemy_repositories import (
    SQLAlchemyUnitOfWork,
    SQLAlchemyUserRepository,
    SQLAlchemyFacilityRepository,
    SQLAlchemyReservationRepository,
    SQLAlchemySubscriptionRepository,
    SQLAlchemyParkingSessionRepository,
)

__all__ = [
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyUserRepository",
    "SQLAlchemyFacilityRepository",
    "SQLAlchemyReservationRepository",
    "SQLAlchemySubscriptionRepository",
    "SQLAlchemyParkingSessionRepository",
]
