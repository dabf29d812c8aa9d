"""Pricing rules.

Every stay is billed by rounding its duration up to the next billing increment
(15 minutes by default) and charging the hourly rate pro rata. Overstays and
unauthorized occupancy add a fixed base penalty on top of the rounded extra
time.
"""
from datetime import datetime
from typing import Optional

from smart_parking.config.settings_env import settings
from smart_parking.domain.errors import ValidationError
from smart_parking.domain.value_objects import WeeklySlots, weekly_minutes
from smart_parking.shared.time_utils import billable_minutes, duration_minutes


class PricingCalculator:
    def __init__(self, increment_minutes: Optional[int] = None, base_penalty: Optional[float] = None):
        self.increment_minutes = increment_minutes or settings.BILLING_INCREMENT_MINUTES
        self.base_penalty = settings.OVERSTAY_BASE_PENALTY if base_penalty is None else base_penalty

    def billed_minutes(self, minutes: float) -> int:
        return billable_minutes(minutes, self.increment_minutes)

    def price_for_minutes(self, hourly_rate: float, minutes: float) -> float:
        return round(self.billed_minutes(minutes) / 60 * hourly_rate, 2)

    def stay_price(self, hourly_rate: float, start: datetime, end: datetime) -> float:
        minutes = duration_minutes(start, end)
        if minutes <= 0:
            raise ValidationError("End time must be after start time")
        return self.price_for_minutes(hourly_rate, minutes)

    def penalty_for_minutes(self, hourly_rate: float, minutes: float) -> float:
        return round(self.base_penalty + self.price_for_minutes(hourly_rate, minutes), 2)

    def overstay_penalty(self, hourly_rate: float, authorized_end: datetime, actual_end: datetime) -> float:
        if actual_end <= authorized_end:
            return 0.0
        return self.penalty_for_minutes(hourly_rate, duration_minutes(authorized_end, actual_end))


class SubscriptionPricing:
    """Monthly price = weekly committed hours x rate x weeks per month, minus the subscriber discount."""

    def __init__(self, discount: Optional[float] = None, weeks_per_month: Optional[float] = None):
        self.discount = settings.SUBSCRIPTION_DISCOUNT if discount is None else discount
        self.weeks_per_month = weeks_per_month or settings.WEEKS_PER_MONTH

    def weekly_hours(self, weekly_slots: WeeklySlots) -> float:
        return weekly_minutes(weekly_slots) / 60

    def monthly_price(self, hourly_rate: float, weekly_slots: WeeklySlots) -> float:
        weekly_price = self.weekly_hours(weekly_slots) * hourly_rate
        return round(weekly_price * self.weeks_per_month * (1 - self.discount), 2)

    def total_price(self, hourly_rate: float, weekly_slots: WeeklySlots, duration_months: int) -> float:
        return round(self.monthly_price(hourly_rate, weekly_slots) * duration_months, 2)
