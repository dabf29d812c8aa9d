import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Date, Float, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base, relationship

from smart_parking.shared.custom_types import UTCDateTime, WeekdayKeyedJSON

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    created_at = Column(UTCDateTime, default=_now)


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), index=True, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    total_spaces = Column(Integer, nullable=False)
    available_spots = Column(Integer, nullable=False)
    hourly_rate = Column(Float, nullable=False)
    opening_hours = Column(WeekdayKeyedJSON, nullable=False, default=dict)
    # Bumped by every admission; concurrent writers compare-and-swap on it
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, default=_now)

    reservations = relationship("Reservation", back_populates="facility", cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="facility", cascade="all, delete-orphan")
    parking_sessions = relationship("ParkingSession", back_populates="facility", cascade="all, delete-orphan")


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    facility_id = Column(String(36), ForeignKey("facilities.id"), index=True, nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String, default="pending", index=True)  # pending, confirmed, cancelled, completed
    created_at = Column(UTCDateTime, default=_now)

    facility = relationship("Facility", back_populates="reservations")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    facility_id = Column(String(36), ForeignKey("facilities.id"), index=True, nullable=False)
    weekly_time_slots = Column(WeekdayKeyedJSON, nullable=False)
    duration_months = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    monthly_amount = Column(Float, nullable=False)
    status = Column(String, default="active", index=True)  # active, expired, cancelled
    created_at = Column(UTCDateTime, default=_now)

    facility = relationship("Facility", back_populates="subscriptions")


class ParkingSession(Base):
    __tablename__ = "parking_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    facility_id = Column(String(36), ForeignKey("facilities.id"), index=True, nullable=False)
    reservation_id = Column(String(36), ForeignKey("reservations.id"), nullable=True)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=True)
    total_amount = Column(Float, nullable=True)
    penalty_amount = Column(Float, default=0.0)
    status = Column(String, default="active", index=True)  # active, completed, overstayed
    created_at = Column(UTCDateTime, default=_now)

    facility = relationship("Facility", back_populates="parking_sessions")
