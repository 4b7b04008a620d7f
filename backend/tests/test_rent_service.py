# Overview: Pytest coverage for rent calculation (pure; no database).

"""
Rent Calculator Tests

Rate tiers used throughout: 6-Month Initial = 182 days @ Rs.36/bag,
1-Year = 365 days @ Rs.55/bag.
"""

from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from app.errors import InvalidDateRangeError, OverdraftAttemptError, ValidationError
from app.services.rent_service import RateTier, calculate_rent, select_rate_tier


TIERS = [
    RateTier(label="1-Year", max_days=365, rate_paise=5500),
    RateTier(label="6-Month Initial", max_days=182, rate_paise=3600),
]

START = date(2024, 1, 1)


def _record(bags_stored=100, start=START):
    return SimpleNamespace(storage_start_date=start, bags_stored=bags_stored)


class TestSelectRateTier:
    """Tier selection by storage duration."""

    def test_first_day_uses_shortest_tier(self):
        tier, cycles = select_rate_tier(TIERS, 0)
        assert tier.label == "6-Month Initial"
        assert cycles == 1

    def test_boundary_is_inclusive(self):
        """Exactly max_days stays in that tier."""
        tier, _ = select_rate_tier(TIERS, 182)
        assert tier.label == "6-Month Initial"

    def test_one_day_past_boundary_moves_up(self):
        tier, cycles = select_rate_tier(TIERS, 183)
        assert tier.label == "1-Year"
        assert cycles == 1

    def test_longest_tier_repeats_per_started_cycle(self):
        tier, cycles = select_rate_tier(TIERS, 366)
        assert tier.label == "1-Year"
        assert cycles == 2

        _, cycles = select_rate_tier(TIERS, 730)
        assert cycles == 2

        _, cycles = select_rate_tier(TIERS, 731)
        assert cycles == 3

    def test_unordered_tiers_are_sorted(self):
        tier, _ = select_rate_tier(list(reversed(TIERS)), 10)
        assert tier.max_days == 182

    def test_empty_tiers_rejected(self):
        with pytest.raises(ValidationError):
            select_rate_tier([], 10)

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidDateRangeError):
            select_rate_tier(TIERS, -1)

    def test_zero_day_tier_rejected(self):
        with pytest.raises(ValidationError):
            select_rate_tier([RateTier(label="bad", max_days=0, rate_paise=100)], 0)


class TestCalculateRent:
    """calculate_rent(record, as_of, bags, tiers)."""

    def test_six_month_rent(self):
        quote = calculate_rent(_record(), START + timedelta(days=30), 40, TIERS)
        assert quote.rent_paise == 40 * 3600
        assert quote.tier == "6-Month Initial"
        assert quote.days_stored == 30

    def test_one_year_rent(self):
        quote = calculate_rent(_record(), START + timedelta(days=200), 10, TIERS)
        assert quote.rent_paise == 10 * 5500
        assert quote.rate_paise == 5500

    def test_second_year_bills_two_cycles(self):
        quote = calculate_rent(_record(), START + timedelta(days=400), 10, TIERS)
        assert quote.cycles == 2
        assert quote.rent_paise == 10 * 5500 * 2

    def test_zero_bags_bills_nothing(self):
        quote = calculate_rent(_record(), START, 0, TIERS)
        assert quote.rent_paise == 0

    def test_same_inputs_same_quote(self):
        a = calculate_rent(_record(), date(2024, 5, 1), 25, TIERS)
        b = calculate_rent(_record(), date(2024, 5, 1), 25, TIERS)
        assert a == b

    def test_negative_bags_rejected(self):
        with pytest.raises(ValidationError):
            calculate_rent(_record(), START, -1, TIERS)

    def test_date_before_start_rejected(self):
        with pytest.raises(InvalidDateRangeError):
            calculate_rent(_record(), START - timedelta(days=1), 1, TIERS)

    def test_more_bags_than_stored_rejected(self):
        with pytest.raises(OverdraftAttemptError):
            calculate_rent(_record(bags_stored=5), START, 6, TIERS)

    def test_to_dict(self):
        quote = calculate_rent(_record(), START, 1, TIERS)
        assert quote.to_dict() == {
            "rent_paise": 3600,
            "rate_paise": 3600,
            "tier": "6-Month Initial",
            "days_stored": 0,
            "cycles": 1,
        }
