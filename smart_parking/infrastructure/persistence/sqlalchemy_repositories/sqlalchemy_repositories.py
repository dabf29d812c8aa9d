import math
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from smart_parking.application.repositories import (
    AbstractFacilityRepository,
    AbstractParkingSessionRepository,
    AbstractReservationRepository,
    AbstractSubscriptionRepository,
    AbstractUnitOfWork,
    AbstractUserRepository,
)
from smart_parking.domain.common import ReservationStatus, SessionStatus, SubscriptionStatus
from smart_parking.domain.entities import Facility, ParkingSession, Reservation, Subscription, User
from smart_parking.domain.errors import NotFoundError
from smart_parking.domain.value_objects import GpsCoordinates
from smart_parking.infrastructure.persistence.models.models import (
    Facility as ORMFacility,
    ParkingSession as ORMParkingSession,
    Reservation as ORMReservation,
    Subscription as ORMSubscription,
    User as ORMUser,
)

KM_PER_DEGREE = 111.0


def _shifted_spots(delta: int):
    """SQL expression moving the cached counter by ``delta``, clamped to [0, total_spaces]."""
    shifted = ORMFacility.available_spots + delta
    return case(
        (shifted < 0, 0),
        (shifted > ORMFacility.total_spaces, ORMFacility.total_spaces),
        else_=shifted,
    )


def _to_user(orm_user: ORMUser) -> User:
    return User(
        id=orm_user.id,
        email=orm_user.email,
        full_name=orm_user.full_name,
        created_at=orm_user.created_at,
    )


def _to_facility(orm_facility: ORMFacility) -> Facility:
    return Facility(
        id=orm_facility.id,
        owner_id=orm_facility.owner_id,
        latitude=orm_facility.latitude,
        longitude=orm_facility.longitude,
        total_spaces=orm_facility.total_spaces,
        hourly_rate=orm_facility.hourly_rate,
        opening_hours=orm_facility.opening_hours or {},
        available_spots=orm_facility.available_spots,
        version=orm_facility.version,
        created_at=orm_facility.created_at,
    )


def _to_reservation(orm_reservation: ORMReservation) -> Reservation:
    return Reservation(
        id=orm_reservation.id,
        user_id=orm_reservation.user_id,
        facility_id=orm_reservation.facility_id,
        start_time=orm_reservation.start_time,
        end_time=orm_reservation.end_time,
        total_amount=orm_reservation.total_amount,
        status=orm_reservation.status,
        created_at=orm_reservation.created_at,
    )


def _to_subscription(orm_subscription: ORMSubscription) -> Subscription:
    return Subscription(
        id=orm_subscription.id,
        user_id=orm_subscription.user_id,
        facility_id=orm_subscription.facility_id,
        weekly_time_slots=orm_subscription.weekly_time_slots,
        duration_months=orm_subscription.duration_months,
        start_date=orm_subscription.start_date,
        end_date=orm_subscription.end_date,
        monthly_amount=orm_subscription.monthly_amount,
        status=orm_subscription.status,
        created_at=orm_subscription.created_at,
    )


def _to_session(orm_session: ORMParkingSession) -> ParkingSession:
    return ParkingSession(
        id=orm_session.id,
        user_id=orm_session.user_id,
        facility_id=orm_session.facility_id,
        reservation_id=orm_session.reservation_id,
        start_time=orm_session.start_time,
        end_time=orm_session.end_time,
        total_amount=orm_session.total_amount,
        penalty_amount=orm_session.penalty_amount or 0.0,
        status=orm_session.status,
        created_at=orm_session.created_at,
    )


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()


class SQLAlchemyUserRepository(AbstractUserRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        orm_user = await self.session.get(ORMUser, user_id)
        return _to_user(orm_user) if orm_user else None

    async def exists(self, user_id: str) -> bool:
        result = await self.session.execute(select(func.count(ORMUser.id)).where(ORMUser.id == user_id))
        return (result.scalar() or 0) > 0

    async def add(self, user: User) -> User:
        orm_user = ORMUser(email=user.email, full_name=user.full_name)
        if user.id:
            orm_user.id = user.id
        self.session.add(orm_user)
        await self.session.flush()
        await self.session.refresh(orm_user)
        return _to_user(orm_user)


class SQLAlchemyFacilityRepository(AbstractFacilityRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, facility_id: str) -> Optional[Facility]:
        result = await self.session.execute(
            select(ORMFacility).where(ORMFacility.id == facility_id).execution_options(populate_existing=True)
        )
        orm_facility = result.scalars().first()
        return _to_facility(orm_facility) if orm_facility else None

    async def get_for_update(self, facility_id: str) -> Optional[Facility]:
        # FOR UPDATE is ignored by SQLite; the version check still catches lost races there
        result = await self.session.execute(
            select(ORMFacility)
            .where(ORMFacility.id == facility_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        orm_facility = result.scalars().first()
        return _to_facility(orm_facility) if orm_facility else None

    async def exists(self, facility_id: str) -> bool:
        result = await self.session.execute(
            select(func.count(ORMFacility.id)).where(ORMFacility.id == facility_id)
        )
        return (result.scalar() or 0) > 0

    async def find_near_location(self, point: GpsCoordinates, radius_km: float) -> List[Facility]:
        lat_delta = radius_km / KM_PER_DEGREE
        lon_delta = radius_km / (KM_PER_DEGREE * max(math.cos(math.radians(point.latitude)), 0.01))
        result = await self.session.execute(
            select(ORMFacility).where(
                and_(
                    ORMFacility.latitude.between(point.latitude - lat_delta, point.latitude + lat_delta),
                    ORMFacility.longitude.between(point.longitude - lon_delta, point.longitude + lon_delta),
                )
            )
        )
        facilities = [_to_facility(f) for f in result.scalars().all()]
        return [f for f in facilities if f.distance_to(point) <= radius_km]

    async def add(self, facility: Facility) -> Facility:
        orm_facility = ORMFacility(
            owner_id=facility.owner_id,
            latitude=facility.latitude,
            longitude=facility.longitude,
            total_spaces=facility.total_spaces,
            available_spots=facility.available_spots,
            hourly_rate=facility.hourly_rate,
            opening_hours=facility.opening_hours.to_dict(),
            version=facility.version,
        )
        if facility.id:
            orm_facility.id = facility.id
        self.session.add(orm_facility)
        await self.session.flush()
        await self.session.refresh(orm_facility)
        return _to_facility(orm_facility)

    async def update(self, facility: Facility) -> Facility:
        orm_facility = await self.session.get(ORMFacility, facility.id)
        if orm_facility is None:
            raise NotFoundError(f"Facility with ID {facility.id} not found.")
        orm_facility.latitude = facility.latitude
        orm_facility.longitude = facility.longitude
        orm_facility.total_spaces = facility.total_spaces
        orm_facility.available_spots = facility.available_spots
        orm_facility.hourly_rate = facility.hourly_rate
        orm_facility.opening_hours = facility.opening_hours.to_dict()
        orm_facility.version = ORMFacility.version + 1
        await self.session.flush()
        await self.session.refresh(orm_facility)
        return _to_facility(orm_facility)

    async def delete(self, facility_id: str):
        orm_facility = await self.session.get(ORMFacility, facility_id)
        if orm_facility is None:
            raise NotFoundError(f"Facility with ID {facility_id} not found.")
        await self.session.delete(orm_facility)
        await self.session.flush()

    async def compare_and_bump_version(self, facility_id: str, expected_version: int, spots_delta: int = 0) -> bool:
        result = await self.session.execute(
            update(ORMFacility)
            .where(and_(ORMFacility.id == facility_id, ORMFacility.version == expected_version))
            .values(version=ORMFacility.version + 1, available_spots=_shifted_spots(spots_delta))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def adjust_available_spots(self, facility_id: str, delta: int) -> bool:
        result = await self.session.execute(
            update(ORMFacility)
            .where(ORMFacility.id == facility_id)
            .values(version=ORMFacility.version + 1, available_spots=_shifted_spots(delta))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class SQLAlchemyReservationRepository(AbstractReservationRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        orm_reservation = await self.session.get(ORMReservation, reservation_id)
        return _to_reservation(orm_reservation) if orm_reservation else None

    async def add(self, reservation: Reservation) -> Reservation:
        orm_reservation = ORMReservation(
            user_id=reservation.user_id,
            facility_id=reservation.facility_id,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            total_amount=reservation.total_amount,
            status=reservation.status.value,
        )
        self.session.add(orm_reservation)
        await self.session.flush()
        await self.session.refresh(orm_reservation)
        return _to_reservation(orm_reservation)

    async def update(self, reservation: Reservation) -> Reservation:
        orm_reservation = await self.session.get(ORMReservation, reservation.id)
        if orm_reservation is None:
            raise NotFoundError(f"Reservation with ID {reservation.id} not found.")
        orm_reservation.start_time = reservation.start_time
        orm_reservation.end_time = reservation.end_time
        orm_reservation.total_amount = reservation.total_amount
        orm_reservation.status = reservation.status.value
        await self.session.flush()
        await self.session.refresh(orm_reservation)
        return _to_reservation(orm_reservation)

    async def find_active_for_facility(self, facility_id: str) -> List[Reservation]:
        result = await self.session.execute(
            select(ORMReservation)
            .where(
                and_(
                    ORMReservation.facility_id == facility_id,
                    ORMReservation.status == ReservationStatus.CONFIRMED.value,
                )
            )
            .order_by(ORMReservation.start_time)
        )
        return [_to_reservation(r) for r in result.scalars().all()]

    async def find_conflicting(self, facility_id: str, start: datetime, end: datetime) -> List[Reservation]:
        result = await self.session.execute(
            select(ORMReservation)
            .where(
                and_(
                    ORMReservation.facility_id == facility_id,
                    ORMReservation.status == ReservationStatus.CONFIRMED.value,
                    ORMReservation.start_time < end,
                    ORMReservation.end_time > start,
                )
            )
            .order_by(ORMReservation.start_time)
        )
        return [_to_reservation(r) for r in result.scalars().all()]

    async def find_by_user(self, user_id: str) -> List[Reservation]:
        result = await self.session.execute(
            select(ORMReservation)
            .where(ORMReservation.user_id == user_id)
            .order_by(ORMReservation.start_time.desc())
        )
        return [_to_reservation(r) for r in result.scalars().all()]

    async def find_by_facility(self, facility_id: str) -> List[Reservation]:
        result = await self.session.execute(
            select(ORMReservation)
            .where(ORMReservation.facility_id == facility_id)
            .order_by(ORMReservation.start_time)
        )
        return [_to_reservation(r) for r in result.scalars().all()]


class SQLAlchemySubscriptionRepository(AbstractSubscriptionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        orm_subscription = await self.session.get(ORMSubscription, subscription_id)
        return _to_subscription(orm_subscription) if orm_subscription else None

    async def add(self, subscription: Subscription) -> Subscription:
        orm_subscription = ORMSubscription(
            user_id=subscription.user_id,
            facility_id=subscription.facility_id,
            weekly_time_slots=subscription.slots_as_dict(),
            duration_months=subscription.duration_months,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            monthly_amount=subscription.monthly_amount,
            status=subscription.status.value,
        )
        self.session.add(orm_subscription)
        await self.session.flush()
        await self.session.refresh(orm_subscription)
        return _to_subscription(orm_subscription)

    async def update(self, subscription: Subscription) -> Subscription:
        orm_subscription = await self.session.get(ORMSubscription, subscription.id)
        if orm_subscription is None:
            raise NotFoundError(f"Subscription with ID {subscription.id} not found.")
        orm_subscription.weekly_time_slots = subscription.slots_as_dict()
        orm_subscription.end_date = subscription.end_date
        orm_subscription.monthly_amount = subscription.monthly_amount
        orm_subscription.status = subscription.status.value
        await self.session.flush()
        await self.session.refresh(orm_subscription)
        return _to_subscription(orm_subscription)

    async def find_active_for_facility(self, facility_id: str) -> List[Subscription]:
        result = await self.session.execute(
            select(ORMSubscription).where(
                and_(
                    ORMSubscription.facility_id == facility_id,
                    ORMSubscription.status == SubscriptionStatus.ACTIVE.value,
                )
            )
        )
        return [_to_subscription(s) for s in result.scalars().all()]

    async def find_active_for_user(self, user_id: str) -> List[Subscription]:
        result = await self.session.execute(
            select(ORMSubscription).where(
                and_(
                    ORMSubscription.user_id == user_id,
                    ORMSubscription.status == SubscriptionStatus.ACTIVE.value,
                )
            )
        )
        return [_to_subscription(s) for s in result.scalars().all()]

    async def find_by_facility(self, facility_id: str) -> List[Subscription]:
        result = await self.session.execute(
            select(ORMSubscription)
            .where(ORMSubscription.facility_id == facility_id)
            .order_by(ORMSubscription.start_date)
        )
        return [_to_subscription(s) for s in result.scalars().all()]


class SQLAlchemyParkingSessionRepository(AbstractParkingSessionRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, session_id: str) -> Optional[ParkingSession]:
        orm_session = await self.session.get(ORMParkingSession, session_id)
        return _to_session(orm_session) if orm_session else None

    async def add(self, session: ParkingSession) -> ParkingSession:
        orm_session = ORMParkingSession(
            user_id=session.user_id,
            facility_id=session.facility_id,
            reservation_id=session.reservation_id,
            start_time=session.start_time,
            status=session.status.value,
        )
        self.session.add(orm_session)
        await self.session.flush()
        await self.session.refresh(orm_session)
        return _to_session(orm_session)

    async def update(self, session: ParkingSession) -> ParkingSession:
        orm_session = await self.session.get(ORMParkingSession, session.id)
        if orm_session is None:
            raise NotFoundError(f"Parking session with ID {session.id} not found.")
        orm_session.end_time = session.end_time
        orm_session.total_amount = session.total_amount
        orm_session.penalty_amount = session.penalty_amount
        orm_session.status = session.status.value
        await self.session.flush()
        await self.session.refresh(orm_session)
        return _to_session(orm_session)

    async def find_active_for_facility(self, facility_id: str) -> List[ParkingSession]:
        result = await self.session.execute(
            select(ORMParkingSession)
            .where(
                and_(
                    ORMParkingSession.facility_id == facility_id,
                    ORMParkingSession.status == SessionStatus.ACTIVE.value,
                )
            )
            .order_by(ORMParkingSession.start_time)
        )
        return [_to_session(s) for s in result.scalars().all()]

    async def find_active_for_user_and_facility(self, user_id: str, facility_id: str) -> Optional[ParkingSession]:
        result = await self.session.execute(
            select(ORMParkingSession)
            .where(
                and_(
                    ORMParkingSession.user_id == user_id,
                    ORMParkingSession.facility_id == facility_id,
                    ORMParkingSession.status == SessionStatus.ACTIVE.value,
                )
            )
            .order_by(ORMParkingSession.start_time.desc())
        )
        orm_session = result.scalars().first()
        return _to_session(orm_session) if orm_session else None

    async def find_by_facility(self, facility_id: str) -> List[ParkingSession]:
        result = await self.session.execute(
            select(ORMParkingSession)
            .where(ORMParkingSession.facility_id == facility_id)
            .order_by(ORMParkingSession.start_time)
        )
        return [_to_session(s) for s in result.scalars().all()]

    async def find_by_reservation(self, reservation_id: str) -> List[ParkingSession]:
        result = await self.session.execute(
            select(ORMParkingSession)
            .where(ORMParkingSession.reservation_id == reservation_id)
            .order_by(ORMParkingSession.start_time)
        )
        return [_to_session(s) for s in result.scalars().all()]
