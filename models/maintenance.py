"""
Maintenance window model.
Reads, status derivation, ending and the expiry sweep for product maintenance.

A maintenance without end_date is indefinite and blocks the product until
someone ends it. The ACTIVE / SCHEDULED / ENDED status is never stored: it is
derived from the dates and ended_at at read time.
"""

import logging
from datetime import date
from typing import Optional

from database import get_db, transaction
from utils.audit import log_audit
from utils.datetime_helpers import get_now_iso, get_today
from utils.events import emit, maintenance_ended
from utils.validators import parse_date, parse_optional_date
from .errors import ValidationError, NotFoundError
from .product import get_product_or_404, set_product_status
from .reservation_availability import intervals_overlap

logger = logging.getLogger(__name__)

# ended_by value written by the expiry sweep
SYSTEM_ACTOR = 'SYSTEM'


# =============================================================================
# STATUS
# =============================================================================

def get_maintenance_status(maintenance: dict, today: date = None) -> str:
    """
    Derive ACTIVE, SCHEDULED or ENDED.

    Args:
        maintenance: Row with start_date, end_date, ended_at
        today: Reference day (defaults to today in the facility timezone)
    """
    today = today or get_today()

    if maintenance['ended_at']:
        return 'ENDED'
    end = parse_optional_date(maintenance['end_date'])
    if end is not None and end < today:
        return 'ENDED'
    if parse_date(maintenance['start_date']) > today:
        return 'SCHEDULED'
    return 'ACTIVE'


def _with_status(row, today: date) -> dict:
    maintenance = dict(row)
    maintenance['status'] = get_maintenance_status(maintenance, today)
    return maintenance


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_maintenance_by_id(maintenance_id: int) -> Optional[dict]:
    """
    Get a maintenance with its derived status.

    Returns:
        dict or None
    """
    db = get_db()
    row = db.execute('''
        SELECT m.*, p.name as product_name
        FROM maintenances m
        JOIN products p ON m.product_id = p.id
        WHERE m.id = ?
    ''', (maintenance_id,)).fetchone()
    return _with_status(row, get_today()) if row else None


def get_maintenance_or_404(maintenance_id: int) -> dict:
    """get_maintenance_by_id() that raises NotFoundError."""
    maintenance = get_maintenance_by_id(maintenance_id)
    if not maintenance:
        raise NotFoundError("Maintenance not found", maintenance_id=maintenance_id)
    return maintenance


def get_product_maintenances(product_id: int, include_ended: bool = True) -> list:
    """
    All maintenances of a product, most recent start first.

    Args:
        product_id: Product ID
        include_ended: Keep ENDED windows in the result
    """
    db = get_db()
    today = get_today()
    rows = db.execute('''
        SELECT * FROM maintenances
        WHERE product_id = ?
        ORDER BY start_date DESC, id DESC
    ''', (product_id,)).fetchall()

    maintenances = [_with_status(row, today) for row in rows]
    if not include_ended:
        maintenances = [m for m in maintenances if m['status'] != 'ENDED']
    return maintenances


def get_active_maintenance(product_id: int, today: date = None) -> Optional[dict]:
    """The maintenance currently blocking a product, if any."""
    today = today or get_today()
    for maintenance in get_product_maintenances(product_id, include_ended=False):
        if get_maintenance_status(maintenance, today) == 'ACTIVE':
            return maintenance
    return None


def get_scheduled_maintenances(product_id: int, today: date = None) -> list:
    """Non-ended maintenances starting after today, soonest first."""
    today = today or get_today()
    db = get_db()
    rows = db.execute('''
        SELECT * FROM maintenances
        WHERE product_id = ? AND ended_at IS NULL AND start_date > ?
        ORDER BY start_date
    ''', (product_id, today.isoformat())).fetchall()
    return [_with_status(row, today) for row in rows]


# =============================================================================
# VALIDATION
# =============================================================================

def check_maintenance_overlap(
    product_id: int,
    start: date,
    end: Optional[date],
    exclude_id: int = None,
    conn=None
) -> dict:
    """
    Look for a non-ended maintenance overlapping [start, end or forever].

    Returns:
        dict: {'has_overlap': bool, 'overlapping_maintenance': dict or None}
    """
    db = conn or get_db()
    query = 'SELECT * FROM maintenances WHERE product_id = ? AND ended_at IS NULL'
    params = [product_id]

    if exclude_id:
        query += ' AND id != ?'
        params.append(exclude_id)

    for row in db.execute(query + ' ORDER BY start_date', params).fetchall():
        existing_start = parse_date(row['start_date'])
        existing_end = parse_optional_date(row['end_date'])
        if intervals_overlap(start, end, existing_start, existing_end):
            return {'has_overlap': True, 'overlapping_maintenance': dict(row)}

    return {'has_overlap': False, 'overlapping_maintenance': None}


def parse_maintenance_window(start_date, end_date) -> tuple:
    """
    Parse and check a maintenance window.

    Returns:
        tuple: (start, end) where end may be None (indefinite)

    Raises:
        ValidationError: Malformed dates or end before start
    """
    start = parse_date(start_date, 'start_date')
    end = parse_optional_date(end_date, 'end_date')
    if end is not None and end < start:
        raise ValidationError("End date must be on or after start date")
    return start, end


def _has_other_active_maintenance(db, product_id: int, exclude_id: int, today: date) -> bool:
    row = db.execute('''
        SELECT 1 FROM maintenances
        WHERE product_id = ?
          AND id != ?
          AND ended_at IS NULL
          AND start_date <= ?
          AND (end_date IS NULL OR end_date >= ?)
        LIMIT 1
    ''', (product_id, exclude_id, today.isoformat(), today.isoformat())).fetchone()
    return row is not None


def _close_maintenance(db, maintenance: dict, ended_by: str, today: date) -> bool:
    """
    Mark a maintenance ended; frees the product when nothing else blocks it.

    Returns:
        bool: True if the product went back to AVAILABLE

    Raises:
        ValidationError: The row was ended in the meantime
    """
    cursor = db.execute('''
        UPDATE maintenances
        SET ended_at = ?, ended_by = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ? AND ended_at IS NULL
    ''', (get_now_iso(), ended_by, maintenance['id']))
    if cursor.rowcount == 0:
        raise ValidationError("Maintenance has already ended")

    product = get_product_or_404(maintenance['product_id'], conn=db)
    if (product['status'] == 'MAINTENANCE'
            and not _has_other_active_maintenance(db, maintenance['product_id'],
                                                  maintenance['id'], today)):
        set_product_status(maintenance['product_id'], 'AVAILABLE')
        return True
    return False


# =============================================================================
# END / CANCEL
# =============================================================================

def end_maintenance(maintenance_id: int, ended_by: str) -> dict:
    """
    End a maintenance now (admin).

    The row is read under the write lock, so of two concurrent calls the
    second sees ended_at and fails.

    Raises:
        NotFoundError: Unknown maintenance
        ValidationError: Already ended
    """
    with transaction() as db:
        maintenance = get_maintenance_or_404(maintenance_id)
        if maintenance['ended_at']:
            raise ValidationError("Maintenance has already ended")
        product_released = _close_maintenance(db, maintenance, ended_by, get_today())

    logger.info("Maintenance %s ended by %s", maintenance_id, ended_by)
    log_audit('END', 'maintenance', maintenance_id,
              after={'ended_by': ended_by, 'product_released': product_released})

    maintenance = get_maintenance_by_id(maintenance_id)
    emit(maintenance_ended, 'maintenance', maintenance=maintenance)
    return maintenance


def cancel_scheduled_maintenance(maintenance_id: int, performed_by: str) -> None:
    """
    Delete a maintenance that has not started yet.

    Reservations its creation cancelled stay cancelled and refunded.

    Raises:
        NotFoundError: Unknown maintenance
        ValidationError: Already started or ended
    """
    maintenance = get_maintenance_or_404(maintenance_id)
    if maintenance['ended_at']:
        raise ValidationError("Maintenance has already ended")
    if parse_date(maintenance['start_date']) <= get_today():
        raise ValidationError("Only a maintenance that has not started can be cancelled; end it instead")

    with transaction() as db:
        db.execute('DELETE FROM maintenances WHERE id = ?', (maintenance_id,))

    logger.info("Scheduled maintenance %s removed by %s", maintenance_id, performed_by)
    log_audit('DELETE', 'maintenance', maintenance_id, before={
        'product_id': maintenance['product_id'],
        'start_date': maintenance['start_date'],
        'end_date': maintenance['end_date'],
        'cancelled_reservations_count': maintenance['cancelled_reservations_count'],
    })


# =============================================================================
# SWEEP
# =============================================================================

def activate_scheduled_maintenances(today: date = None) -> int:
    """
    Put products whose maintenance has started into MAINTENANCE status.

    Idempotent; safe at any cadence.

    Returns:
        int: Products switched
    """
    today = today or get_today()
    db = get_db()
    rows = db.execute('''
        SELECT m.id, m.product_id
        FROM maintenances m
        JOIN products p ON m.product_id = p.id
        WHERE m.ended_at IS NULL
          AND m.start_date <= ?
          AND (m.end_date IS NULL OR m.end_date >= ?)
          AND p.status = 'AVAILABLE'
    ''', (today.isoformat(), today.isoformat())).fetchall()

    activated = set()
    for row in rows:
        if row['product_id'] in activated:
            continue
        set_product_status(row['product_id'], 'MAINTENANCE')
        activated.add(row['product_id'])
        logger.info("Activated maintenance %s on product %s", row['id'], row['product_id'])

    return len(activated)


def end_expired_maintenances(today: date = None) -> int:
    """
    End maintenances whose end date has passed (ended_by = SYSTEM).

    Idempotent; safe at any cadence.

    Returns:
        int: Maintenances ended
    """
    today = today or get_today()
    db = get_db()
    rows = db.execute('''
        SELECT * FROM maintenances
        WHERE ended_at IS NULL AND end_date IS NOT NULL AND end_date < ?
        ORDER BY id
    ''', (today.isoformat(),)).fetchall()

    ended = 0
    for row in rows:
        maintenance = dict(row)
        try:
            with transaction() as tx:
                _close_maintenance(tx, maintenance, SYSTEM_ACTOR, today)
        except ValidationError:
            logger.info("Maintenance %s was ended by someone else; skipped", maintenance['id'])
            continue
        ended += 1
        logger.info("Ended expired maintenance %s on product %s",
                    maintenance['id'], maintenance['product_id'])
        emit(maintenance_ended, 'maintenance', maintenance=maintenance)

    return ended


def sweep_maintenances(today: date = None) -> dict:
    """Run both sweep steps: expire first, then activate."""
    today = today or get_today()
    ended = end_expired_maintenances(today)
    activated = activate_scheduled_maintenances(today)
    logger.info("Maintenance sweep for %s: %s ended, %s activated", today, ended, activated)
    return {'ended': ended, 'activated': activated}