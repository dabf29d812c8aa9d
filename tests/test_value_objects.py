from datetime import datetime, time, timezone

import pytest

from smart_parking.domain.errors import ValidationError
from smart_parking.domain.value_objects import (
    GpsCoordinates,
    OpeningHours,
    TimeSlot,
    parse_weekly_slots,
    weekly_minutes,
    weekly_slots_to_dict,
)


class TestGpsCoordinates:
    def test_rejects_out_of_range_latitude(self):
        with pytest.raises(ValidationError, match="Latitude"):
            GpsCoordinates(91, 0)

    def test_rejects_out_of_range_longitude(self):
        with pytest.raises(ValidationError, match="Longitude"):
            GpsCoordinates(0, -181)

    def test_distance_paris_to_london(self):
        paris = GpsCoordinates(48.8566, 2.3522)
        london = GpsCoordinates(51.5074, -0.1278)
        assert 340 < paris.distance_to(london) < 350

    def test_distance_to_self_is_zero(self):
        point = GpsCoordinates(10, 10)
        assert point.distance_to(point) == 0


class TestTimeSlot:
    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            TimeSlot.from_strings("17:00", "09:00")

    def test_from_dict_requires_both_bounds(self):
        with pytest.raises(ValidationError, match="start and end"):
            TimeSlot.from_dict({"start": "09:00"})

    def test_contains_is_inclusive(self):
        slot = TimeSlot.from_strings("09:00", "17:00")
        assert slot.contains(time(9, 0))
        assert slot.contains(time(17, 0))
        assert not slot.contains(time(17, 1))

    def test_touching_slots_do_not_overlap(self):
        morning = TimeSlot.from_strings("08:00", "12:00")
        afternoon = TimeSlot.from_strings("12:00", "18:00")
        assert not morning.overlaps(afternoon)
        assert morning.overlaps(TimeSlot.from_strings("11:00", "13:00"))

    def test_duration_and_dict(self):
        slot = TimeSlot.from_strings("09:00", "17:30")
        assert slot.duration_minutes == 510
        assert slot.to_dict() == {"start": "09:00", "end": "17:30"}
        assert str(slot) == "09:00-17:30"


class TestWeeklySlots:
    def test_parses_string_day_keys(self):
        weekly = parse_weekly_slots({"1": [{"start": "09:00", "end": "17:00"}]})
        assert list(weekly) == [1]

    def test_rejects_day_out_of_range(self):
        with pytest.raises(ValidationError, match="Day of week"):
            parse_weekly_slots({7: [{"start": "09:00", "end": "17:00"}]})

    def test_empty_days_are_dropped(self):
        assert parse_weekly_slots({1: [], 2: []}) == {}

    def test_weekly_minutes_and_round_trip(self):
        raw = {
            1: [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "17:00"}],
            3: [{"start": "09:00", "end": "10:00"}],
        }
        weekly = parse_weekly_slots(raw)
        assert weekly_minutes(weekly) == 480
        assert weekly_slots_to_dict(weekly) == raw


class TestOpeningHours:
    def test_empty_table_is_always_open(self):
        hours = OpeningHours()
        assert hours.always_open
        assert hours.is_open_at(datetime(2030, 1, 6, 3, 0, tzinfo=timezone.utc))

    def test_open_within_hours_on_listed_day(self):
        hours = OpeningHours({1: {"open": "08:00", "close": "18:00"}})
        assert hours.is_open_at(datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc))
        assert hours.is_open_at(datetime(2030, 1, 7, 18, 0, tzinfo=timezone.utc))
        assert not hours.is_open_at(datetime(2030, 1, 7, 18, 1, tzinfo=timezone.utc))

    def test_unlisted_day_is_closed(self):
        hours = OpeningHours({1: {"open": "08:00", "close": "18:00"}})
        assert not hours.is_open_at(datetime(2030, 1, 8, 10, 0, tzinfo=timezone.utc))

    def test_allows_slot_within_hours(self):
        hours = OpeningHours({1: {"open": "08:00", "close": "18:00"}})
        assert hours.allows(1, TimeSlot.from_strings("09:00", "17:00"))
        assert not hours.allows(1, TimeSlot.from_strings("07:00", "17:00"))
        assert not hours.allows(2, TimeSlot.from_strings("09:00", "17:00"))

    def test_close_before_open_is_rejected(self):
        with pytest.raises(ValidationError, match="Closing time"):
            OpeningHours({1: {"open": "18:00", "close": "08:00"}})

    def test_missing_close_is_rejected(self):
        with pytest.raises(ValidationError, match="open and close"):
            OpeningHours({1: {"open": "08:00"}})
