"""
Reservation state management functions.
Handles the lifecycle transition matrix and status history.
"""

from database import get_db
from .errors import InvalidTransitionError


# =============================================================================
# CONSTANTS
# =============================================================================

RESERVATION_STATUSES = ('CONFIRMED', 'CHECKED_OUT', 'RETURNED', 'CANCELLED', 'REFUNDED')

# from_status -> statuses reachable in one step
VALID_TRANSITIONS = {
    'CONFIRMED': frozenset({'CHECKED_OUT', 'CANCELLED'}),
    'CHECKED_OUT': frozenset({'RETURNED'}),
    'RETURNED': frozenset({'REFUNDED'}),
    'CANCELLED': frozenset({'REFUNDED'}),
    'REFUNDED': frozenset(),
}

RETURN_CONDITIONS = ('OK', 'MINOR_DAMAGE', 'MAJOR_DAMAGE', 'MISSING_PARTS', 'BROKEN')


# =============================================================================
# TRANSITION RULES
# =============================================================================

def can_transition(from_status: str, to_status: str) -> bool:
    """True if to_status is reachable from from_status in one step."""
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def validate_state_transition(from_status: str, to_status: str) -> None:
    """
    Check a lifecycle move against the transition matrix.

    Args:
        from_status: Current status
        to_status: Requested status

    Raises:
        InvalidTransitionError: Move not in VALID_TRANSITIONS
    """
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(
            f"Cannot move reservation from {from_status} to {to_status}",
            from_status=from_status,
            to_status=to_status
        )


def is_terminal(status: str) -> bool:
    """True for statuses that no longer occupy the product."""
    return status in ('RETURNED', 'CANCELLED', 'REFUNDED')


# =============================================================================
# HISTORY
# =============================================================================

def record_status_change(db, reservation_id: int, from_status, to_status: str,
                         changed_by: str, notes: str = None) -> None:
    """Append a history row inside the caller's transaction."""
    db.execute('''
        INSERT INTO reservation_status_history
        (reservation_id, from_status, to_status, changed_by, notes)
        VALUES (?, ?, ?, ?, ?)
    ''', (reservation_id, from_status, to_status, changed_by, notes))


def get_status_history(reservation_id: int) -> list:
    """
    Get status change history for reservation.

    Args:
        reservation_id: Reservation ID

    Returns:
        list: History entries, oldest first
    """
    db = get_db()
    rows = db.execute('''
        SELECT * FROM reservation_status_history
        WHERE reservation_id = ?
        ORDER BY id
    ''', (reservation_id,)).fetchall()
    return [dict(r) for r in rows]
