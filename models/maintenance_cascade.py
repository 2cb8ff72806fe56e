"""
Maintenance creation and update, and their reservation cascade.

Creating a maintenance cancels and fully refunds every CONFIRMED reservation
overlapping the window, whatever the self-service refund deadline says.
Moving the end of a window later does the same for the days it gains.
Each reservation is handled in its own SAVEPOINT: one that cannot be
cancelled is rolled back, logged and skipped, and the maintenance is still
written. Counts stored on the maintenance are computed from the successful
outcomes only.
"""

import logging
import sqlite3
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Optional

from database import get_db, transaction, savepoint
from utils.audit import log_audit
from utils.datetime_helpers import get_today
from utils.events import emit, maintenance_created, reservation_cancelled, reservation_refunded
from utils.validators import parse_optional_date
from .errors import LendingError, MaintenanceOverlapError, ValidationError
from .maintenance import (
    check_maintenance_overlap,
    get_maintenance_by_id,
    get_maintenance_or_404,
    parse_maintenance_window,
)
from .product import get_product_or_404, set_product_status
from .reservation_availability import OCCUPYING_STATUSES
from .reservation_crud import apply_cancellation, apply_refund
from .reservation_queries import get_reservation_by_id

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CascadeOutcome:
    """Result of cancelling one reservation for a maintenance."""

    reservation_id: int
    ok: bool
    refunded: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# QUERIES
# =============================================================================

def get_affected_reservations(product_id: int, start: date, end: Optional[date],
                              conn=None) -> list:
    """
    Reservations occupying any day of [start, end or forever].

    Returns:
        list: Reservation rows (CONFIRMED and CHECKED_OUT) with user details
    """
    db = conn or get_db()
    placeholders = ','.join('?' * len(OCCUPYING_STATUSES))
    rows = db.execute(f'''
        SELECT r.*, u.username, u.email, u.full_name as user_full_name
        FROM reservations r
        JOIN users u ON r.user_id = u.id
        WHERE r.product_id = ?
          AND r.status IN ({placeholders})
          AND r.end_date >= ?
          AND r.start_date <= COALESCE(?, '9999-12-31')
        ORDER BY r.start_date, r.id
    ''', [product_id, *OCCUPYING_STATUSES, start.isoformat(),
          end.isoformat() if end else None]).fetchall()
    return [dict(row) for row in rows]


def preview_maintenance(product_id: int, start_date, end_date=None) -> dict:
    """
    What creating this maintenance would do, without writing anything.

    CHECKED_OUT reservations are listed with will_cancel False: the product
    is already out and has to come back through a return.

    Returns:
        dict: has_overlap, overlapping_maintenance, affected_reservations,
              total_reservations_affected, total_credits_to_refund
    """
    get_product_or_404(product_id)
    start, end = parse_maintenance_window(start_date, end_date)

    overlap = check_maintenance_overlap(product_id, start, end)

    affected = []
    for reservation in get_affected_reservations(product_id, start, end):
        affected.append({
            'id': reservation['id'],
            'user_id': reservation['user_id'],
            'username': reservation['username'],
            'start_date': reservation['start_date'],
            'end_date': reservation['end_date'],
            'status': reservation['status'],
            'credits_charged': reservation['credits_charged'],
            'will_cancel': reservation['status'] == 'CONFIRMED',
        })

    cancellable = [r for r in affected if r['will_cancel']]
    return {
        'has_overlap': overlap['has_overlap'],
        'overlapping_maintenance': overlap['overlapping_maintenance'],
        'affected_reservations': affected,
        'total_reservations_affected': len(cancellable),
        'total_credits_to_refund': sum(r['credits_charged'] for r in cancellable),
    }


# =============================================================================
# CREATE
# =============================================================================

def _cancel_and_refund(db, reservation: dict, performed_by: str, reason: str) -> CascadeOutcome:
    try:
        with savepoint(db, f"cascade_{reservation['id']}"):
            apply_cancellation(db, reservation, performed_by, reason)
            refunded = apply_refund(db, reservation, performed_by, reason=reason)
    except (LendingError, sqlite3.Error) as e:
        logger.error("Maintenance cascade skipped reservation %s: %s",
                     reservation['id'], e, exc_info=True)
        return CascadeOutcome(reservation_id=reservation['id'], ok=False, error=str(e))

    return CascadeOutcome(reservation_id=reservation['id'], ok=True, refunded=refunded)


def _run_cascade(db, maintenance_id: int, product_id: int, start: date, end: Optional[date],
                 performed_by: str, reason: str) -> tuple:
    """
    Cancel and refund the reservations on [start, end] and add them to the
    maintenance counters.

    Returns:
        tuple: (outcomes, cascade_reason)
    """
    cascade_reason = f"Maintenance #{maintenance_id}" + (f": {reason}" if reason else '')
    outcomes = [
        _cancel_and_refund(db, reservation, performed_by, cascade_reason)
        for reservation in get_affected_reservations(product_id, start, end, conn=db)
    ]

    succeeded = [o for o in outcomes if o.ok]
    db.execute('''
        UPDATE maintenances
        SET cancelled_reservations_count = cancelled_reservations_count + ?,
            refunded_credits_total = refunded_credits_total + ?
        WHERE id = ?
    ''', (len(succeeded), sum(o.refunded for o in succeeded), maintenance_id))
    return outcomes, cascade_reason


def _emit_cascade_events(outcomes: list, cascade_reason: str) -> None:
    for outcome in outcomes:
        if not outcome.ok:
            continue
        reservation = get_reservation_by_id(outcome.reservation_id)
        emit(reservation_cancelled, 'maintenance', reservation=reservation, reason=cascade_reason)
        emit(reservation_refunded, 'maintenance', reservation=reservation, amount=outcome.refunded)


def create_maintenance(product_id: int, start_date, end_date, reason: str,
                       created_by: str) -> dict:
    """
    Create a maintenance and cancel/refund the reservations it overlaps.

    Args:
        product_id: Product to block
        start_date: First day
        end_date: Last day, inclusive; None for an indefinite window
        reason: Free text shown to affected members
        created_by: Actor username

    Returns:
        dict: maintenance, outcomes, cancelled_reservations_count,
              refunded_credits_total

    Raises:
        NotFoundError: Unknown product
        ValidationError: Bad window or archived product
        MaintenanceOverlapError: Overlaps a non-ended maintenance (nothing cancelled)
    """
    product = get_product_or_404(product_id)
    if product['status'] == 'ARCHIVED':
        raise ValidationError("Cannot schedule maintenance on an archived product")

    start, end = parse_maintenance_window(start_date, end_date)
    today = get_today()

    with transaction() as db:
        overlap = check_maintenance_overlap(product_id, start, end, conn=db)
        if overlap['has_overlap']:
            raise MaintenanceOverlapError(
                "A maintenance already exists for this period",
                overlapping_maintenance_id=overlap['overlapping_maintenance']['id']
            )

        cursor = db.execute('''
            INSERT INTO maintenances (product_id, start_date, end_date, reason, created_by)
            VALUES (?, ?, ?, ?, ?)
        ''', (product_id, start.isoformat(), end.isoformat() if end else None, reason, created_by))
        maintenance_id = cursor.lastrowid

        outcomes, cascade_reason = _run_cascade(db, maintenance_id, product_id, start, end,
                                                created_by, reason)

        if start <= today and product['status'] == 'AVAILABLE':
            set_product_status(product_id, 'MAINTENANCE')

    succeeded = [o for o in outcomes if o.ok]
    failed = [o for o in outcomes if not o.ok]
    cancelled_count = len(succeeded)
    refunded_total = sum(o.refunded for o in succeeded)
    logger.info("Maintenance %s created on product %s: %s cancelled, %s credits refunded, %s skipped",
                maintenance_id, product_id, cancelled_count, refunded_total, len(failed))

    log_audit('CREATE', 'maintenance', maintenance_id, after={
        'product_id': product_id,
        'start_date': start,
        'end_date': end,
        'cancelled_reservations_count': cancelled_count,
        'refunded_credits_total': refunded_total,
        'skipped_reservation_ids': [o.reservation_id for o in failed],
    })

    maintenance = get_maintenance_by_id(maintenance_id)
    _emit_cascade_events(outcomes, cascade_reason)
    emit(maintenance_created, 'maintenance', maintenance=maintenance, outcomes=outcomes)

    return {
        'maintenance': maintenance,
        'outcomes': [o.to_dict() for o in outcomes],
        'cancelled_reservations_count': cancelled_count,
        'refunded_credits_total': refunded_total,
    }


# =============================================================================
# UPDATE
# =============================================================================

_UNSET = object()


def _newly_covered(start: date, old_end: Optional[date], new_end: Optional[date]) -> Optional[tuple]:
    """Days a window gains when its end moves from old_end to new_end, or None."""
    if old_end is None:
        return None
    if new_end is not None and new_end <= old_end:
        return None
    return max(start, old_end + timedelta(days=1)), new_end


def update_maintenance(maintenance_id: int, performed_by: str, end_date=_UNSET,
                       reason=_UNSET) -> dict:
    """
    Change the end date or reason of a maintenance that has not ended.

    Passing end_date=None makes the window indefinite. A changed window is
    checked again for overlap with other maintenances. When the window
    grows, the reservations on the days it gains are cancelled and refunded
    the same way as on creation, and added to the maintenance counters.

    Returns:
        dict: Maintenance with derived status

    Raises:
        NotFoundError, ValidationError, MaintenanceOverlapError
    """
    updates = {}
    outcomes, cascade_reason = [], None

    with transaction() as db:
        maintenance = get_maintenance_or_404(maintenance_id)
        if maintenance['ended_at']:
            raise ValidationError("Cannot modify an ended maintenance")

        if reason is not _UNSET:
            updates['reason'] = reason

        if end_date is not _UNSET:
            start, end = parse_maintenance_window(maintenance['start_date'], end_date)
            overlap = check_maintenance_overlap(maintenance['product_id'], start, end,
                                                exclude_id=maintenance_id, conn=db)
            if overlap['has_overlap']:
                raise MaintenanceOverlapError(
                    "A maintenance already exists for this period",
                    overlapping_maintenance_id=overlap['overlapping_maintenance']['id']
                )
            updates['end_date'] = end.isoformat() if end else None

        if updates:
            set_clause = ', '.join(f'{field} = ?' for field in updates)
            db.execute(
                f'UPDATE maintenances SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
                list(updates.values()) + [maintenance_id]
            )

        if end_date is not _UNSET:
            gained = _newly_covered(start, parse_optional_date(maintenance['end_date']), end)
            if gained:
                outcomes, cascade_reason = _run_cascade(
                    db, maintenance_id, maintenance['product_id'], *gained, performed_by,
                    updates.get('reason', maintenance['reason'])
                )

    if updates:
        succeeded = [o for o in outcomes if o.ok]
        log_audit('UPDATE', 'maintenance', maintenance_id,
                  before={field: maintenance[field] for field in updates},
                  after={**updates,
                         'cancelled_reservation_ids': [o.reservation_id for o in succeeded],
                         'skipped_reservation_ids': [o.reservation_id for o in outcomes if not o.ok]})
        logger.info("Maintenance %s updated by %s: %s more reservations cancelled",
                    maintenance_id, performed_by, len(succeeded))

    _emit_cascade_events(outcomes, cascade_reason)
    return get_maintenance_by_id(maintenance_id)
