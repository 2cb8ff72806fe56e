"""
Reservation data access functions.

This module re-exports the functions of the split modules so callers can
import everything reservation-related from one place:
- reservation_state.py: Transition matrix and status history
- reservation_crud.py: Create and lifecycle transitions
- reservation_queries.py: Lookups and filtered listing
- reservation_availability.py: Conflict index and calendars
"""

# State management
from .reservation_state import (
    RESERVATION_STATUSES,
    RETURN_CONDITIONS,
    VALID_TRANSITIONS,
    can_transition,
    validate_state_transition,
    is_terminal,
    get_status_history,
)

# Lifecycle operations
from .reservation_crud import (
    validate_booking_dates,
    is_refund_eligible,
    create_reservation,
    checkout_reservation,
    return_reservation,
    cancel_reservation,
    refund_reservation,
    update_reservation_dates,
    check_extension,
    extend_reservation,
)

# Query operations
from .reservation_queries import (
    get_reservation_by_id,
    get_reservation_or_404,
    get_reservations_filtered,
)

# Availability
from .reservation_availability import (
    intervals_overlap,
    has_conflict,
    list_conflicts,
    check_availability,
    get_product_availability,
)

__all__ = [
    'RESERVATION_STATUSES',
    'RETURN_CONDITIONS',
    'VALID_TRANSITIONS',
    'can_transition',
    'validate_state_transition',
    'is_terminal',
    'get_status_history',
    'validate_booking_dates',
    'is_refund_eligible',
    'create_reservation',
    'checkout_reservation',
    'return_reservation',
    'cancel_reservation',
    'refund_reservation',
    'update_reservation_dates',
    'check_extension',
    'extend_reservation',
    'get_reservation_by_id',
    'get_reservation_or_404',
    'get_reservations_filtered',
    'intervals_overlap',
    'has_conflict',
    'list_conflicts',
    'check_availability',
    'get_product_availability',
]
