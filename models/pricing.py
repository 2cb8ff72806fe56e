"""
Reservation pricing.
Pure functions: no database access.
"""

import math
from datetime import date

from .errors import PriceHiddenError, ValidationError

CREDIT_PERIODS = ('DAY', 'WEEK')


def duration_days(start: date, end: date) -> int:
    """
    Inclusive duration of a booking in days.

    A booking that starts and ends on the same day lasts 1 day.

    Raises:
        ValidationError: If end is before start
    """
    if end < start:
        raise ValidationError("End date must be on or after start date")
    return (end - start).days + 1


def billable_periods(duration: int, period: str) -> int:
    """Number of billed periods; partial weeks are charged as full weeks."""
    if period == 'DAY':
        return duration
    if period == 'WEEK':
        return math.ceil(duration / 7)
    raise ValidationError(f"Invalid credit period: {period}")


def calculate_price(start: date, end: date, price_credits, period: str) -> int:
    """
    Credits owed for an inclusive interval.

    Args:
        start: First day
        end: Last day (inclusive)
        price_credits: Credits per period; None means the price is hidden
        period: 'DAY' or 'WEEK'

    Returns:
        int: Credits

    Raises:
        PriceHiddenError: price_credits is None
        ValidationError: negative price, unknown period or end < start
    """
    if price_credits is None:
        raise PriceHiddenError("Price is not available for this product")
    if price_credits < 0:
        raise ValidationError("Price cannot be negative")

    return billable_periods(duration_days(start, end), period) * price_credits


def quote(product: dict, start: date, end: date) -> dict:
    """
    Price breakdown for a product and interval.

    Args:
        product: Product dict (price_credits, credit_period)
        start: First day
        end: Last day (inclusive)

    Returns:
        dict: duration, periods, period, unit_price, total
    """
    duration = duration_days(start, end)
    period = product['credit_period']
    total = calculate_price(start, end, product['price_credits'], period)

    return {
        'duration': duration,
        'periods': billable_periods(duration, period),
        'period': period,
        'unit_price': product['price_credits'],
        'total': total,
    }


def extension_cost(start: date, old_end: date, new_end: date, price_credits, period: str) -> int:
    """
    Extra credits for moving a booking's last day from old_end to new_end.

    Charged as the difference between the two full prices, so a weekly
    product only costs more once the extension starts a new week.

    Raises:
        ValidationError: new_end is not after old_end
        PriceHiddenError: price_credits is None
    """
    if new_end <= old_end:
        raise ValidationError("New end date must be after the current end date")
    return (calculate_price(start, new_end, price_credits, period)
            - calculate_price(start, old_end, price_credits, period))
