from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from smart_parking.domain.entities import Facility, ParkingSession, Reservation, Subscription, User
from smart_parking.domain.value_objects import GpsCoordinates


class AbstractUnitOfWork(ABC):
    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class AbstractUserRepository(ABC):
    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def exists(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def add(self, user: User) -> User:
        pass


class AbstractFacilityRepository(ABC):
    @abstractmethod
    async def get_by_id(self, facility_id: str) -> Optional[Facility]:
        pass

    @abstractmethod
    async def get_for_update(self, facility_id: str) -> Optional[Facility]:
        """Load a facility inside an admission, locking the row where the backend can."""
        pass

    @abstractmethod
    async def exists(self, facility_id: str) -> bool:
        pass

    @abstractmethod
    async def find_near_location(self, point: GpsCoordinates, radius_km: float) -> List[Facility]:
        pass

    @abstractmethod
    async def add(self, facility: Facility) -> Facility:
        pass

    @abstractmethod
    async def update(self, facility: Facility) -> Facility:
        pass

    @abstractmethod
    async def delete(self, facility_id: str):
        pass

    @abstractmethod
    async def compare_and_bump_version(self, facility_id: str, expected_version: int, spots_delta: int = 0) -> bool:
        """Advance the facility version if it is still ``expected_version``.

        The cached counter moves by ``spots_delta`` in the same statement.
        Returns False when another writer committed first.
        """
        pass

    @abstractmethod
    async def adjust_available_spots(self, facility_id: str, delta: int) -> bool:
        """Move the cached counter by ``delta`` and bump the version, so in-flight admissions retry."""
        pass


class AbstractReservationRepository(ABC):
    @abstractmethod
    async def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def add(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def find_active_for_facility(self, facility_id: str) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_conflicting(self, facility_id: str, start: datetime, end: datetime) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_by_user(self, user_id: str) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_by_facility(self, facility_id: str) -> List[Reservation]:
        pass


class AbstractSubscriptionRepository(ABC):
    @abstractmethod
    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    async def add(self, subscription: Subscription) -> Subscription:
        pass

    @abstractmethod
    async def update(self, subscription: Subscription) -> Subscription:
        pass

    @abstractmethod
    async def find_active_for_facility(self, facility_id: str) -> List[Subscription]:
        pass

    @abstractmethod
    async def find_active_for_user(self, user_id: str) -> List[Subscription]:
        pass

    @abstractmethod
    async def find_by_facility(self, facility_id: str) -> List[Subscription]:
        pass


class AbstractParkingSessionRepository(ABC):
    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[ParkingSession]:
        pass

    @abstractmethod
    async def add(self, session: ParkingSession) -> ParkingSession:
        pass

    @abstractmethod
    async def update(self, session: ParkingSession) -> ParkingSession:
        pass

    @abstractmethod
    async def find_active_for_facility(self, facility_id: str) -> List[ParkingSession]:
        pass

    @abstractmethod
    async def find_active_for_user_and_facility(self, user_id: str, facility_id: str) -> Optional[ParkingSession]:
        pass

    @abstractmethod
    async def find_by_facility(self, facility_id: str) -> List[ParkingSession]:
        pass

    @abstractmethod
    async def find_by_reservation(self, reservation_id: str) -> List[ParkingSession]:
        pass
