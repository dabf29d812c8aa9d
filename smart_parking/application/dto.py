from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from smart_parking.domain.common import ReservationStatus, SessionStatus, SubscriptionStatus, UnauthorizedReason


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Timestamped(BaseModel):
    """Naive datetimes coming in are taken to be UTC."""

    @field_validator(
        "at", "start_time", "end_time", "entry_time", "exit_time", "as_of", "from_date", "to_date",
        "authorized_until", "generated_at",
        mode="after", check_fields=False,
    )
    @classmethod
    def make_datetime_aware(cls, dt: Optional[datetime]) -> Optional[datetime]:
        return _aware(dt)


class SlotSchema(BaseModel):
    start: str
    end: str


# Facilities

class CreateFacilityRequest(BaseModel):
    owner_id: str
    latitude: float
    longitude: float
    total_spaces: int
    hourly_rate: float
    opening_hours: Dict[int, Dict[str, str]] = Field(default_factory=dict)


class UpdateFacilityRequest(BaseModel):
    facility_id: str
    owner_id: str
    hourly_rate: Optional[float] = None
    total_spaces: Optional[int] = None
    opening_hours: Optional[Dict[int, Dict[str, str]]] = None


class UpdateFacilityRatesRequest(BaseModel):
    facility_id: str
    owner_id: str
    hourly_rate: float


class DeleteFacilityRequest(BaseModel):
    facility_id: str
    owner_id: str


class FacilityResponse(BaseModel):
    id: str
    owner_id: str
    latitude: float
    longitude: float
    total_spaces: int
    available_spots: int
    hourly_rate: float
    opening_hours: Dict[int, Dict[str, str]]

    model_config = ConfigDict(from_attributes=True)


class SearchFacilitiesRequest(Timestamped):
    latitude: float
    longitude: float
    radius_km: float = 5.0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_hourly_rate: Optional[float] = None
    minimum_spaces: Optional[int] = None
    limit: int = 10


class FacilitySearchResult(BaseModel):
    facility_id: str
    latitude: float
    longitude: float
    total_spaces: int
    available_spaces: int
    hourly_rate: float
    distance_km: float
    is_open: bool
    opening_hours: Dict[int, Dict[str, str]]


class SearchFacilitiesResponse(BaseModel):
    results: List[FacilitySearchResult]
    total_found: int


# Availability

class CheckAvailabilityRequest(Timestamped):
    facility_id: str
    at: datetime


class CheckAvailabilityResponse(Timestamped):
    facility_id: str
    at: datetime
    total_spaces: int
    available_spaces: int
    reserved_spaces: int
    subscribed_spaces: int
    active_sessions: int
    is_open: bool
    hourly_rate: float
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None


# Reservations

class CreateReservationRequest(Timestamped):
    user_id: str
    facility_id: str
    start_time: datetime
    end_time: datetime


class ReservationResponse(Timestamped):
    id: str
    user_id: str
    facility_id: str
    start_time: datetime
    end_time: datetime
    total_amount: float
    duration_minutes: int
    status: ReservationStatus

    model_config = ConfigDict(from_attributes=True)


class CancelReservationRequest(BaseModel):
    reservation_id: str
    user_id: str


class GenerateInvoiceRequest(BaseModel):
    reservation_id: str
    user_id: str


class InvoiceResponse(Timestamped):
    invoice_number: str
    reservation_id: str
    user_id: str
    facility_id: str
    start_time: datetime
    end_time: datetime
    reserved_duration_minutes: int
    actual_duration_minutes: int
    hourly_rate: float
    base_amount: float
    overstay_minutes: int
    overstay_amount: float
    penalty_amount: float
    total_amount: float
    currency: str
    status: ReservationStatus
    generated_at: datetime


# Subscriptions

class CreateSubscriptionRequest(BaseModel):
    user_id: str
    facility_id: str
    weekly_time_slots: Dict[int, List[SlotSchema]]
    duration_months: int
    start_date: date


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    facility_id: str
    weekly_time_slots: Dict[int, List[SlotSchema]]
    duration_months: int
    start_date: date
    end_date: date
    monthly_amount: float
    total_amount: float
    status: SubscriptionStatus


class ValidateSubscriptionSlotsRequest(BaseModel):
    facility_id: str
    weekly_time_slots: Dict[int, List[SlotSchema]]
    duration_months: int
    start_date: date


class SlotAvailability(BaseModel):
    day: int
    start: str
    end: str
    within_opening_hours: bool
    available_spaces: int


class ValidateSubscriptionSlotsResponse(BaseModel):
    facility_id: str
    is_valid: bool
    slots: List[SlotAvailability]
    errors: List[str]
    monthly_amount: Optional[float] = None
    total_amount: Optional[float] = None
    end_date: Optional[date] = None


class GetActiveSubscriptionsAtRequest(Timestamped):
    facility_id: str
    at: datetime


class ActiveSubscriptionInfo(BaseModel):
    subscription_id: str
    user_id: str
    start_date: date
    end_date: date
    covered_slot: Dict[str, object]
    monthly_amount: float
    remaining_days: int


class GetActiveSubscriptionsAtResponse(Timestamped):
    facility_id: str
    at: datetime
    count: int
    subscriptions: List[ActiveSubscriptionInfo]


class GetFacilitySubscriptionsRequest(BaseModel):
    facility_id: str
    active_only: bool = False


class GetFacilitySubscriptionsResponse(BaseModel):
    facility_id: str
    count: int
    subscriptions: List[SubscriptionResponse]


class CancelSubscriptionRequest(BaseModel):
    subscription_id: str
    user_id: str


# Sessions

class EnterParkingRequest(Timestamped):
    user_id: str
    facility_id: str
    entry_time: Optional[datetime] = None


class EnterParkingResponse(Timestamped):
    session_id: str
    user_id: str
    facility_id: str
    reservation_id: Optional[str] = None
    subscription_id: Optional[str] = None
    start_time: datetime
    authorized_until: Optional[datetime] = None
    status: SessionStatus


class ExitParkingRequest(Timestamped):
    session_id: str
    exit_time: Optional[datetime] = None


class ExitParkingResponse(Timestamped):
    session_id: str
    user_id: str
    facility_id: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    base_amount: float
    overstay_penalty: float
    total_amount: float
    was_overstayed: bool
    status: SessionStatus


# Unauthorized occupancy

class ListUnauthorizedUsersRequest(Timestamped):
    facility_id: str
    as_of: Optional[datetime] = None


class UnauthorizedUserInfo(Timestamped):
    session_id: str
    user_id: str
    start_time: datetime
    duration_minutes: int
    reason: UnauthorizedReason
    estimated_penalty: float


class ListUnauthorizedUsersResponse(Timestamped):
    facility_id: str
    as_of: datetime
    count: int
    unauthorized_users: List[UnauthorizedUserInfo]


# Analytics

class GetFacilityStatisticsRequest(Timestamped):
    facility_id: str
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


class FacilityStatisticsResponse(Timestamped):
    facility_id: str
    from_date: datetime
    to_date: datetime
    total_spaces: int
    currently_occupied: int
    occupancy_rate: float
    total_reservations: int
    completed_reservations: int
    cancelled_reservations: int
    total_sessions: int
    overstayed_sessions: int
    average_session_minutes: float
    active_subscriptions: int
    total_revenue: float
    average_daily_revenue: float
    peak_hours: List[dict]
    sessions_by_day: List[dict]


class CalculateMonthlyRevenueRequest(BaseModel):
    facility_id: str
    year: int
    month: int


class MonthlyRevenueResponse(BaseModel):
    facility_id: str
    year: int
    month: int
    reservation_revenue: float
    session_revenue: float
    subscription_revenue: float
    penalty_revenue: float
    total_revenue: float
    reservation_count: int
    session_count: int
    subscription_count: int
