"""
Tests for reservation pricing.
"""

import pytest
from datetime import date

from models.errors import PriceHiddenError, ValidationError
from models.pricing import duration_days, billable_periods, calculate_price, quote, extension_cost


class TestDuration:
    """Tests for inclusive durations."""

    def test_same_day_is_one_day(self):
        """A booking that starts and ends the same day lasts 1 day."""
        assert duration_days(date(2024, 3, 1), date(2024, 3, 1)) == 1

    def test_inclusive(self):
        """Both ends count."""
        assert duration_days(date(2024, 3, 1), date(2024, 3, 10)) == 10

    def test_end_before_start(self):
        """Reversed interval is invalid."""
        with pytest.raises(ValidationError):
            duration_days(date(2024, 3, 2), date(2024, 3, 1))


class TestCalculatePrice:
    """Tests for credit pricing."""

    def test_daily(self):
        """DAY pricing multiplies by days."""
        assert calculate_price(date(2024, 3, 1), date(2024, 3, 3), 4, 'DAY') == 12

    def test_weekly_rounds_up(self):
        """10 days at 5 credits per week costs 2 weeks."""
        assert calculate_price(date(2024, 3, 1), date(2024, 3, 10), 5, 'WEEK') == 10

    def test_weekly_exact(self):
        """7 days is exactly one week."""
        assert calculate_price(date(2024, 3, 1), date(2024, 3, 7), 5, 'WEEK') == 5

    def test_free_product(self):
        """Price 0 is bookable and costs nothing."""
        assert calculate_price(date(2024, 3, 1), date(2024, 3, 7), 0, 'DAY') == 0

    def test_hidden_price(self):
        """A hidden price cannot be computed."""
        with pytest.raises(PriceHiddenError):
            calculate_price(date(2024, 3, 1), date(2024, 3, 2), None, 'DAY')

    def test_unknown_period(self):
        """Only DAY and WEEK exist."""
        with pytest.raises(ValidationError):
            billable_periods(3, 'MONTH')


class TestQuote:
    """Tests for the price breakdown."""

    def test_breakdown(self):
        """Quote reports duration, periods and total."""
        product = {'price_credits': 5, 'credit_period': 'WEEK'}
        result = quote(product, date(2024, 3, 1), date(2024, 3, 10))
        assert result == {
            'duration': 10,
            'periods': 2,
            'period': 'WEEK',
            'unit_price': 5,
            'total': 10,
        }


class TestExtensionCost:
    """Tests for the price of pushing the last day back."""

    def test_daily(self):
        """Two more days at 5 credits/day."""
        assert extension_cost(date(2025, 6, 2), date(2025, 6, 4), date(2025, 6, 6), 5, 'DAY') == 10

    def test_weekly_within_week(self):
        """Staying inside the billed week is free."""
        assert extension_cost(date(2025, 6, 2), date(2025, 6, 4), date(2025, 6, 8), 5, 'WEEK') == 0

    def test_weekly_new_week(self):
        """Day 8 starts a second billed week."""
        assert extension_cost(date(2025, 6, 2), date(2025, 6, 8), date(2025, 6, 9), 5, 'WEEK') == 5

    def test_must_move_later(self):
        """Same or earlier end is refused."""
        with pytest.raises(ValidationError):
            extension_cost(date(2025, 6, 2), date(2025, 6, 4), date(2025, 6, 4), 5, 'DAY')
