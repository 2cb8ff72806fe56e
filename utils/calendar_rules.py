"""
Weekday rules for checkout and return days.

Sections store the allowed weekdays as ISO codes (Monday=1 .. Sunday=7).
Calendars that number Sunday as 0 must go through from_native_weekday()
before comparison.
"""

from datetime import date
from typing import Iterable, Optional, Union

from models.errors import ValidationError

WEEKDAY_NAMES = {
    1: 'Monday',
    2: 'Tuesday',
    3: 'Wednesday',
    4: 'Thursday',
    5: 'Friday',
    6: 'Saturday',
    7: 'Sunday',
}


def iso_weekday(day: date) -> int:
    """ISO weekday code of a date (Monday=1 .. Sunday=7)."""
    return day.isoweekday()


def from_native_weekday(native: int) -> int:
    """
    Convert a Sunday=0 weekday code (0..6) to ISO (1..7).

    Args:
        native: Weekday where Sunday=0, Monday=1 .. Saturday=6

    Returns:
        int: ISO weekday code

    Raises:
        ValidationError: If native is outside 0..6
    """
    if not isinstance(native, int) or isinstance(native, bool) or not 0 <= native <= 6:
        raise ValidationError(f"Invalid weekday code: {native!r}")
    return 7 if native == 0 else native


def is_allowed_day(day: date, allowed_days: Optional[Iterable[int]]) -> bool:
    """
    Decide whether a date is a legal checkout/return day.

    Args:
        day: Date to check
        allowed_days: ISO weekday codes; empty or None means any day

    Returns:
        bool: True if allowed
    """
    if not allowed_days:
        return True
    return iso_weekday(day) in set(allowed_days)


def parse_weekday_codes(value: Union[str, Iterable[int], None]) -> list:
    """
    Parse a weekday set from storage or user input.

    Accepts a CSV string ('1,5') or an iterable of ints. Codes are
    validated here, at configuration time, never at evaluation time.

    Returns:
        list: Sorted unique ISO codes

    Raises:
        ValidationError: On a code outside 1..7 or a non-integer token
    """
    if value is None:
        return []

    if isinstance(value, str):
        tokens = [t.strip() for t in value.split(',') if t.strip()]
        try:
            codes = [int(t) for t in tokens]
        except ValueError:
            raise ValidationError(f"Invalid weekday list: {value!r}")
    else:
        codes = list(value)

    for code in codes:
        if not isinstance(code, int) or isinstance(code, bool) or not 1 <= code <= 7:
            raise ValidationError(f"Invalid weekday code: {code!r} (expected 1-7, Monday=1)")

    return sorted(set(codes))


def format_weekday_codes(codes: Iterable[int]) -> str:
    """Serialize weekday codes to the CSV stored on sections."""
    return ','.join(str(c) for c in parse_weekday_codes(list(codes)))


def weekday_name(code: int) -> str:
    """English name of an ISO weekday code."""
    return WEEKDAY_NAMES[code]
