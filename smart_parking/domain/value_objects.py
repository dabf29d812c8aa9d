import math
from dataclasses import dataclass
from datetime import datetime, time
from typing import Dict, List, Mapping, Optional, Tuple

from smart_parking.domain.errors import ValidationError
from smart_parking.shared.time_utils import (
    day_of_week,
    format_hhmm,
    minutes_between_times,
    parse_hhmm,
    time_of_day,
)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GpsCoordinates:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90 <= self.latitude <= 90:
            raise ValidationError(f"Latitude must be between -90 and 90, got: {self.latitude:.6f}")
        if not -180 <= self.longitude <= 180:
            raise ValidationError(f"Longitude must be between -180 and 180, got: {self.longitude:.6f}")

    def distance_to(self, other: "GpsCoordinates") -> float:
        """Great-circle distance in kilometers (haversine)."""
        lat_delta = math.radians(other.latitude - self.latitude)
        lon_delta = math.radians(other.longitude - self.longitude)
        a = (
            math.sin(lat_delta / 2) ** 2
            + math.cos(math.radians(self.latitude))
            * math.cos(math.radians(other.latitude))
            * math.sin(lon_delta / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return EARTH_RADIUS_KM * c

    def __str__(self) -> str:
        return f"{self.latitude:.6f},{self.longitude:.6f}"


@dataclass(frozen=True)
class TimeSlot:
    """A time-of-day window on some weekday, e.g. 09:00-17:00."""
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"Start time must be before end time ({format_hhmm(self.start)} >= {format_hhmm(self.end)})"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> "TimeSlot":
        return cls(parse_hhmm(start), parse_hhmm(end))

    @classmethod
    def from_dict(cls, raw: Mapping) -> "TimeSlot":
        if "start" not in raw or "end" not in raw:
            raise ValidationError("Each slot must have start and end time")
        return cls.from_strings(raw["start"], raw["end"])

    @property
    def duration_minutes(self) -> int:
        return minutes_between_times(self.start, self.end)

    def contains(self, at: time) -> bool:
        # Both bounds inclusive
        return self.start <= at <= self.end

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and self.end > other.start

    def within(self, opening: time, closing: time) -> bool:
        return self.start >= opening and self.end <= closing

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_hhmm(self.start), "end": format_hhmm(self.end)}

    def __str__(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


WeeklySlots = Dict[int, Tuple[TimeSlot, ...]]


def _check_day(day) -> int:
    if isinstance(day, bool) or not isinstance(day, int):
        try:
            day = int(day)
        except (TypeError, ValueError):
            raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    if not 0 <= day <= 6:
        raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    return day


def parse_weekly_slots(raw: Mapping) -> WeeklySlots:
    """Turn ``{day: [{"start": "HH:MM", "end": "HH:MM"}, ...]}`` into TimeSlots."""
    weekly: WeeklySlots = {}
    for day, slots in raw.items():
        day = _check_day(day)
        if not isinstance(slots, (list, tuple)):
            raise ValidationError("Time slots for each day must be a list")
        parsed = tuple(slot if isinstance(slot, TimeSlot) else TimeSlot.from_dict(slot) for slot in slots)
        if parsed:
            weekly[day] = parsed
    return weekly


def weekly_slots_to_dict(weekly: WeeklySlots) -> Dict[int, List[Dict[str, str]]]:
    return {day: [slot.to_dict() for slot in slots] for day, slots in sorted(weekly.items())}


def weekly_minutes(weekly: WeeklySlots) -> int:
    return sum(slot.duration_minutes for slots in weekly.values() for slot in slots)


class OpeningHours:
    """Weekly opening-hours table. An empty table means the facility never closes."""

    def __init__(self, table: Optional[Mapping] = None):
        self._hours: Dict[int, TimeSlot] = {}
        for day, entry in (table or {}).items():
            day = _check_day(day)
            if "open" not in entry or "close" not in entry:
                raise ValidationError(f"Opening hours for day {day} need open and close")
            try:
                self._hours[day] = TimeSlot.from_strings(entry["open"], entry["close"])
            except ValidationError:
                raise ValidationError(f"Closing time must be after opening time on day {day}")

    @property
    def always_open(self) -> bool:
        return not self._hours

    def for_day(self, day: int) -> Optional[TimeSlot]:
        return self._hours.get(day)

    def is_open_at(self, instant: datetime) -> bool:
        if self.always_open:
            return True
        hours = self._hours.get(day_of_week(instant))
        if hours is None:
            return False
        return hours.contains(time_of_day(instant))

    def allows(self, day: int, slot: TimeSlot) -> bool:
        if self.always_open:
            return True
        hours = self._hours.get(day)
        return hours is not None and slot.within(hours.start, hours.end)

    def to_dict(self) -> Dict[int, Dict[str, str]]:
        return {
            day: {"open": format_hhmm(hours.start), "close": format_hhmm(hours.end)}
            for day, hours in sorted(self._hours.items())
        }

    def __eq__(self, other) -> bool:
        return isinstance(other, OpeningHours) and self.to_dict() == other.to_dict()
