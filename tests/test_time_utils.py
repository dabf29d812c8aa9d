from datetime import date, datetime, time, timedelta, timezone
from unittest.mock import patch

import pytest

from smart_parking.domain.errors import ValidationError
from smart_parking.shared.time_utils import (
    add_months,
    billable_minutes,
    contains,
    day_of_week,
    duration_minutes,
    ensure_utc,
    parse_hhmm,
    overlaps,
    quarters,
)

T0 = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)


class TestOverlaps:
    def test_touching_windows_do_not_overlap(self):
        assert not overlaps(T0, T0 + timedelta(hours=1), T0 + timedelta(hours=1), T0 + timedelta(hours=2))

    def test_partial_overlap(self):
        assert overlaps(T0, T0 + timedelta(hours=2), T0 + timedelta(hours=1), T0 + timedelta(hours=3))

    @pytest.mark.parametrize(
        "first, second",
        [
            ((0, 2), (1, 3)),
            ((0, 1), (1, 2)),
            ((0, 4), (1, 2)),
            ((0, 1), (2, 3)),
            ((0, 2), (0, 2)),
        ],
    )
    def test_overlap_is_symmetric(self, first, second):
        a = (T0 + timedelta(hours=first[0]), T0 + timedelta(hours=first[1]))
        b = (T0 + timedelta(hours=second[0]), T0 + timedelta(hours=second[1]))
        assert overlaps(*a, *b) == overlaps(*b, *a)

    def test_contains_is_inclusive_at_both_ends(self):
        end = T0 + timedelta(hours=2)
        assert contains(T0, end, T0)
        assert contains(T0, end, end)
        assert not contains(T0, end, end + timedelta(seconds=1))


class TestBilling:
    @pytest.mark.parametrize(
        "minutes, expected",
        [(0, 0), (1, 15), (15, 15), (16, 30), (80, 90), (210, 210)],
    )
    def test_billable_minutes_round_up_to_quarter(self, minutes, expected):
        assert billable_minutes(minutes) == expected

    def test_rounding_is_idempotent(self):
        assert billable_minutes(billable_minutes(37)) == billable_minutes(37)

    def test_negative_duration_bills_nothing(self):
        assert quarters(-5) == 0

    def test_increment_follows_settings(self):
        with patch("smart_parking.shared.time_utils.settings.BILLING_INCREMENT_MINUTES", 30):
            assert billable_minutes(20) == 30
            assert quarters(61) == 3
        assert billable_minutes(20, increment=10) == 20

    def test_duration_minutes(self):
        assert duration_minutes(T0, T0 + timedelta(minutes=80)) == 80


class TestDayOfWeek:
    def test_sunday_is_zero(self):
        assert day_of_week(date(2030, 1, 6)) == 0

    def test_monday_is_one_for_datetimes(self):
        assert day_of_week(T0) == 1

    def test_saturday_is_six(self):
        assert day_of_week(date(2030, 1, 12)) == 6


class TestParsing:
    def test_parse_hhmm(self):
        assert parse_hhmm("09:30") == time(9, 30)
        assert parse_hhmm(" 7:05 ") == time(7, 5)

    @pytest.mark.parametrize("value", ["24:00", "9h30", "", "12:60", None])
    def test_parse_hhmm_rejects_garbage(self, value):
        with pytest.raises(ValidationError):
            parse_hhmm(value)

    def test_ensure_utc_tags_naive_values(self):
        assert ensure_utc(datetime(2030, 1, 7, 10, 0)) == T0

    def test_ensure_utc_converts_offsets(self):
        cet = timezone(timedelta(hours=1))
        assert ensure_utc(datetime(2030, 1, 7, 11, 0, tzinfo=cet)) == T0


class TestAddMonths:
    def test_simple(self):
        assert add_months(date(2030, 1, 7), 3) == date(2030, 4, 7)

    def test_crosses_year(self):
        assert add_months(date(2030, 11, 15), 2) == date(2031, 1, 15)

    def test_clamps_to_month_end(self):
        assert add_months(date(2030, 1, 31), 1) == date(2030, 2, 28)
