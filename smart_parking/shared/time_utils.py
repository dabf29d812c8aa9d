"""Time-interval helpers shared by the facility model, pricing and availability.

All functions are pure. Instants are timezone-aware UTC datetimes; day of week
follows the 0=Sunday .. 6=Saturday convention used by opening-hours tables and
subscription slots.
"""
import calendar
import math
import re
from datetime import date, datetime, time, timezone
from typing import Optional

from smart_parking.config.settings_env import settings
from smart_parking.domain.errors import ValidationError

_HHMM = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def ensure_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Half-open overlap: [10:00, 11:00) and [11:00, 12:00) do not overlap."""
    return start1 < end2 and end1 > start2


def contains(start: datetime, end: datetime, instant: datetime) -> bool:
    return start <= instant <= end


def duration_minutes(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def quarters(minutes: float, increment: Optional[int] = None) -> int:
    increment = increment or settings.BILLING_INCREMENT_MINUTES
    if minutes <= 0:
        return 0
    return math.ceil(minutes / increment)


def billable_minutes(minutes: float, increment: Optional[int] = None) -> int:
    """Round a duration up to the next billing increment."""
    increment = increment or settings.BILLING_INCREMENT_MINUTES
    return quarters(minutes, increment) * increment


def day_of_week(instant) -> int:
    # weekday() is 0=Monday for both date and datetime
    return (instant.weekday() + 1) % 7


def time_of_day(instant: datetime) -> time:
    return time(instant.hour, instant.minute)


def parse_hhmm(value: str) -> time:
    if isinstance(value, time):
        return time(value.hour, value.minute)
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time format: {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def combine(day: date, at: time) -> datetime:
    return datetime.combine(day, at, tzinfo=timezone.utc)


def minutes_between_times(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
