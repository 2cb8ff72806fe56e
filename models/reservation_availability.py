"""
Interval conflict checks and availability calendars.

Occupied intervals are read from the store on every call: reservations in
CONFIRMED / CHECKED_OUT and maintenances that have not been ended. Dates are
inclusive on both ends; a maintenance without end_date runs forever.
"""

import calendar
from datetime import date, timedelta
from typing import Iterator, Optional

from database import get_db
from utils.calendar_rules import iso_weekday, is_allowed_day
from utils.validators import parse_date
from .errors import ValidationError
from .product import get_product_or_404, get_product_day_rules

OCCUPYING_STATUSES = ('CONFIRMED', 'CHECKED_OUT')


# =============================================================================
# INTERVAL MATH
# =============================================================================

def intervals_overlap(a_start: date, a_end: Optional[date],
                      b_start: date, b_end: Optional[date]) -> bool:
    """
    Inclusive intervals [a_start, a_end] and [b_start, b_end] overlap.

    An end of None is treated as +infinity.
    """
    a_before_b_end = b_end is None or a_start <= b_end
    b_before_a_end = a_end is None or b_start <= a_end
    return a_before_b_end and b_before_a_end


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day of an inclusive range."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def occupied_days(start: date, end: Optional[date], horizon: date) -> set:
    """
    Materialise an interval as a set of days, cut at horizon for open ends.

    Used to build calendars and to cross-check intervals_overlap().
    """
    last = horizon if end is None else min(end, horizon)
    return set(iter_days(start, last))


# =============================================================================
# CONFLICT INDEX
# =============================================================================

def list_conflicts(
    product_id: int,
    start,
    end,
    exclude_reservation_id: int = None,
    conn=None
) -> list:
    """
    Reservations and maintenances occupying any day of [start, end].

    Args:
        product_id: Product to check
        start: First day (date or YYYY-MM-DD)
        end: Last day, inclusive; None means open-ended
        exclude_reservation_id: Reservation ignored (when rescheduling it)
        conn: Connection to read through (a writer's open transaction)

    Returns:
        list: dicts with kind ('reservation' | 'maintenance'), id,
              start_date, end_date, and status or reason
    """
    db = conn or get_db()
    start = parse_date(start, 'start_date')
    end = None if end is None else parse_date(end, 'end_date')

    # ISO date strings compare in calendar order
    placeholders = ','.join('?' * len(OCCUPYING_STATUSES))
    query = f'''
        SELECT id, start_date, end_date, status, user_id
        FROM reservations
        WHERE product_id = ?
          AND status IN ({placeholders})
          AND start_date <= COALESCE(?, '9999-12-31')
          AND end_date >= ?
    '''
    params = [product_id, *OCCUPYING_STATUSES, end.isoformat() if end else None, start.isoformat()]

    if exclude_reservation_id:
        query += ' AND id != ?'
        params.append(exclude_reservation_id)

    query += ' ORDER BY start_date'

    conflicts = [{
        'kind': 'reservation',
        'id': row['id'],
        'start_date': row['start_date'],
        'end_date': row['end_date'],
        'status': row['status'],
        'user_id': row['user_id'],
    } for row in db.execute(query, params).fetchall()]

    rows = db.execute('''
        SELECT id, start_date, end_date, reason
        FROM maintenances
        WHERE product_id = ?
          AND ended_at IS NULL
          AND start_date <= COALESCE(?, '9999-12-31')
          AND (end_date IS NULL OR end_date >= ?)
        ORDER BY start_date
    ''', (product_id, end.isoformat() if end else None, start.isoformat())).fetchall()

    conflicts.extend({
        'kind': 'maintenance',
        'id': row['id'],
        'start_date': row['start_date'],
        'end_date': row['end_date'],
        'reason': row['reason'],
    } for row in rows)

    return conflicts


def has_conflict(
    product_id: int,
    start,
    end,
    exclude_reservation_id: int = None,
    conn=None
) -> bool:
    """True if any reservation or maintenance occupies a day of [start, end]."""
    return bool(list_conflicts(product_id, start, end, exclude_reservation_id, conn=conn))


def check_availability(product_id: int, start, end, exclude_reservation_id: int = None) -> dict:
    """
    Availability of a product for an interval.

    Raises:
        NotFoundError: Unknown product
        ValidationError: Malformed dates or end before start

    Returns:
        dict: {'available': bool, 'conflicts': list}
    """
    get_product_or_404(product_id)
    start = parse_date(start, 'start_date')
    end = parse_date(end, 'end_date')
    if end < start:
        raise ValidationError("End date must be on or after start date")

    conflicts = list_conflicts(product_id, start, end, exclude_reservation_id)
    return {
        'available': not conflicts,
        'conflicts': conflicts,
    }


# =============================================================================
# MONTHLY CALENDAR
# =============================================================================

def _parse_month(month: str) -> tuple:
    try:
        year_str, month_str = month.split('-')
        year, month_num = int(year_str), int(month_str)
        if len(year_str) != 4 or not 1 <= month_num <= 12:
            raise ValueError
    except (ValueError, AttributeError):
        raise ValidationError("Invalid month: expected YYYY-MM")
    return year, month_num


def get_product_availability(product_id: int, month: str) -> dict:
    """
    Day-by-day calendar of a product for one month.

    Each day reports the occupying status (FREE, RESERVED, CHECKED_OUT,
    MAINTENANCE) and whether the section's weekday rules allow a checkout
    or a return on it. A day where neither is allowed is blocked.

    Args:
        product_id: Product ID
        month: 'YYYY-MM'

    Returns:
        dict: product_id, product_name, month, allowed_days_out,
              allowed_days_in, days
    """
    product = get_product_or_404(product_id)
    year, month_num = _parse_month(month)

    first = date(year, month_num, 1)
    last = date(year, month_num, calendar.monthrange(year, month_num)[1])

    days_out, days_in = get_product_day_rules(product)

    # Maintenance wins over a reservation on the same day
    occupancy = {}
    for conflict in list_conflicts(product_id, first, last):
        start = parse_date(conflict['start_date'])
        end = parse_date(conflict['end_date']) if conflict['end_date'] else None

        if conflict['kind'] == 'maintenance':
            status = 'MAINTENANCE'
        elif conflict['status'] == 'CHECKED_OUT':
            status = 'CHECKED_OUT'
        else:
            status = 'RESERVED'

        for day in occupied_days(max(start, first), end, last):
            if occupancy.get(day, (None,))[0] != 'MAINTENANCE':
                occupancy[day] = (status, conflict['kind'], conflict['id'])

    days = []
    for day in iter_days(first, last):
        status, kind, entity_id = occupancy.get(day, ('FREE', None, None))
        can_checkout = is_allowed_day(day, days_out)
        can_return = is_allowed_day(day, days_in)
        days.append({
            'date': day.isoformat(),
            'weekday': iso_weekday(day),
            'status': status,
            'reservation_id': entity_id if kind == 'reservation' else None,
            'maintenance_id': entity_id if kind == 'maintenance' else None,
            'can_checkout': can_checkout,
            'can_return': can_return,
            'is_blocked': not can_checkout and not can_return,
        })

    return {
        'product_id': product_id,
        'product_name': product['name'],
        'month': f'{year:04d}-{month_num:02d}',
        'allowed_days_out': days_out,
        'allowed_days_in': days_in,
        'days': days,
    }
