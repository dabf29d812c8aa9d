from datetime import datetime, timedelta, timezone

import pytest

from smart_parking.domain.errors import ValidationError
from smart_parking.domain.pricing import PricingCalculator, SubscriptionPricing
from smart_parking.domain.value_objects import parse_weekly_slots

START = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)


class TestPricingCalculator:
    """Stays are billed per started quarter hour."""

    def test_eighty_minutes_at_fifteen_per_hour(self):
        pricing = PricingCalculator()
        assert pricing.billed_minutes(80) == 90
        assert pricing.stay_price(15.0, START, START + timedelta(minutes=80)) == 22.50

    def test_exact_quarter_is_not_rounded(self):
        pricing = PricingCalculator()
        assert pricing.stay_price(10.0, START, START + timedelta(hours=3, minutes=30)) == 35.0

    def test_one_second_over_bills_another_quarter(self):
        pricing = PricingCalculator()
        assert pricing.stay_price(10.0, START, START + timedelta(hours=1, seconds=1)) == 12.5

    def test_billed_minutes_are_quarter_multiples(self):
        pricing = PricingCalculator()
        for minutes in range(1, 200, 7):
            billed = pricing.billed_minutes(minutes)
            assert billed % 15 == 0
            assert billed >= minutes

    def test_empty_stay_is_rejected(self):
        with pytest.raises(ValidationError):
            PricingCalculator().stay_price(10.0, START, START)

    def test_overstay_penalty(self):
        pricing = PricingCalculator()
        end = START + timedelta(hours=2)
        assert pricing.overstay_penalty(10.0, end, end + timedelta(minutes=90)) == 35.0

    def test_no_penalty_when_leaving_in_time(self):
        pricing = PricingCalculator()
        assert pricing.overstay_penalty(10.0, START, START) == 0.0
        assert pricing.overstay_penalty(10.0, START, START - timedelta(minutes=5)) == 0.0

    def test_custom_increment_and_penalty(self):
        pricing = PricingCalculator(increment_minutes=60, base_penalty=5.0)
        assert pricing.price_for_minutes(10.0, 61) == 20.0
        assert pricing.penalty_for_minutes(10.0, 1) == 15.0


class TestSubscriptionPricing:
    def test_monthly_price_applies_discount(self):
        weekly = parse_weekly_slots({1: [{"start": "09:00", "end": "17:00"}]})
        pricing = SubscriptionPricing(discount=0.2, weeks_per_month=4.33)
        # 8h x 10 x 4.33 x 0.8
        assert pricing.monthly_price(10.0, weekly) == 277.12
        assert pricing.total_price(10.0, weekly, 3) == 831.36

    def test_no_discount(self):
        weekly = parse_weekly_slots({1: [{"start": "09:00", "end": "10:00"}]})
        assert SubscriptionPricing(discount=0.0, weeks_per_month=4.0).monthly_price(5.0, weekly) == 20.0
