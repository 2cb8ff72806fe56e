"""
Reservation lifecycle operations.

Each public operation is one atomic write: it runs inside
database.transaction() and either fully completes or leaves nothing behind.
Events and audit entries are emitted only after the commit.
"""

import logging
from datetime import timedelta

from flask import current_app

from database import get_db, transaction
from utils.audit import log_audit
from utils.calendar_rules import is_allowed_day, weekday_name, iso_weekday
from utils.datetime_helpers import get_now, get_now_iso, get_today, start_of_day
from utils.events import (
    emit,
    reservation_confirmed,
    reservation_checked_out,
    reservation_returned,
    reservation_cancelled,
    reservation_refunded,
    reservation_extended,
)
from utils.qr_code import generate_reservation_qr_code
from utils.validators import parse_date, validate_time
from .credit import debit, credit, get_balance
from .errors import (
    ValidationError,
    PriceHiddenError,
    NotFoundError,
    PermissionDeniedError,
    ConflictError,
    InvalidAmountError,
    AlreadyRefundedError,
    InsufficientCreditsError,
    LendingError,
    InvalidTransitionError,
)
from .movement import create_movement
from .pricing import calculate_price, duration_days, extension_cost
from .product import get_product_or_404, get_product_day_rules
from .reservation_availability import list_conflicts
from .reservation_queries import get_reservation_by_id, get_reservation_or_404
from .reservation_state import (
    RETURN_CONDITIONS,
    validate_state_transition,
    record_status_change,
)
from .user import get_user_by_id

logger = logging.getLogger(__name__)


# =============================================================================
# BOOKING RULES
# =============================================================================

def validate_booking_dates(product: dict, start, end, is_admin: bool = False,
                           check_start_day: bool = True, check_end_day: bool = True) -> None:
    """
    Check an interval against a product's duration and weekday rules.

    Args:
        product: Product dict joined with its section rules
        start: First day (date)
        end: Last day, inclusive (date)
        is_admin: Admins may book in the past
        check_start_day: Apply the checkout weekday rule
        check_end_day: Apply the return weekday rule

    Raises:
        ValidationError: First rule broken
    """
    if end < start:
        raise ValidationError("End date must be on or after start date")

    if not is_admin and start < get_today():
        raise ValidationError("Start date cannot be in the past")

    duration = duration_days(start, end)
    if duration < product['min_duration']:
        raise ValidationError(
            f"Minimum reservation length is {product['min_duration']} day(s)",
            duration=duration
        )
    if product['max_duration'] and duration > product['max_duration']:
        raise ValidationError(
            f"Maximum reservation length is {product['max_duration']} day(s)",
            duration=duration
        )

    days_out, days_in = get_product_day_rules(product)
    if check_start_day and not is_allowed_day(start, days_out):
        raise ValidationError(
            f"Checkout is not allowed on {weekday_name(iso_weekday(start))} for this product"
        )
    if check_end_day and not is_allowed_day(end, days_in):
        raise ValidationError(
            f"Return is not allowed on {weekday_name(iso_weekday(end))} for this product"
        )


def _raise_if_conflicting(db, product_id: int, start, end, exclude_reservation_id: int = None) -> None:
    conflicts = list_conflicts(product_id, start, end, exclude_reservation_id, conn=db)
    if conflicts:
        kind = conflicts[0]['kind']
        message = ("Product is under maintenance for this period" if kind == 'maintenance'
                   else "Product is already reserved for this period")
        raise ConflictError(message, conflicts=conflicts)


def is_refund_eligible(reservation: dict, now=None) -> bool:
    """
    Self-service cancellation refund rule.

    Eligible while now is at least REFUND_DEADLINE_HOURS before midnight
    (facility timezone) of the start date.
    """
    now = now or get_now()
    hours = current_app.config.get('REFUND_DEADLINE_HOURS', 48)
    deadline = start_of_day(parse_date(reservation['start_date'])) - timedelta(hours=hours)
    return now <= deadline


# =============================================================================
# CREATE
# =============================================================================

def create_reservation(
    user_id: int,
    product_id: int,
    start_date,
    end_date,
    created_by: str,
    start_time: str = None,
    end_time: str = None,
    notes: str = None,
    admin_notes: str = None,
    is_admin: bool = False
) -> dict:
    """
    Book a product for an inclusive date interval.

    Validation runs before any write. The conflict check, debit and insert
    then run under one BEGIN IMMEDIATE transaction, which holds SQLite's
    write lock: a concurrent booking of the same product waits and then sees
    this one.

    Args:
        user_id: Reservation owner (charged)
        product_id: Product to book
        start_date: First day (YYYY-MM-DD or date)
        end_date: Last day, inclusive
        created_by: Actor username
        start_time: Optional HH:MM, display only
        end_time: Optional HH:MM, display only
        notes: Member notes
        admin_notes: Staff notes
        is_admin: Actor is staff (may book past dates)

    Returns:
        dict: Reservation with details

    Raises:
        NotFoundError, PermissionDeniedError, ValidationError, PriceHiddenError,
        ConflictError, InsufficientCreditsError
    """
    user = get_user_by_id(user_id)
    if not user:
        raise NotFoundError("User not found", user_id=user_id)
    if not user['active']:
        raise PermissionDeniedError("User account is disabled")

    product = get_product_or_404(product_id)
    if product['status'] != 'AVAILABLE':
        raise ValidationError(f"Product is not available ({product['status']})")
    if product['price_credits'] is None:
        raise PriceHiddenError("Price is not available for this product")

    start = parse_date(start_date, 'start_date')
    end = parse_date(end_date, 'end_date')
    for field, value in (('start_time', start_time), ('end_time', end_time)):
        if not validate_time(value):
            raise ValidationError(f"Invalid {field}: expected HH:MM")

    validate_booking_dates(product, start, end, is_admin=is_admin)

    with transaction() as db:
        _raise_if_conflicting(db, product_id, start, end)

        price = calculate_price(start, end, product['price_credits'], product['credit_period'])

        cursor = db.execute('''
            INSERT INTO reservations (
                user_id, product_id, start_date, end_date, start_time, end_time,
                status, credits_charged, notes, admin_notes, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, 'CONFIRMED', ?, ?, ?, ?)
        ''', (user_id, product_id, start.isoformat(), end.isoformat(), start_time, end_time,
              price, notes, admin_notes, created_by))
        reservation_id = cursor.lastrowid

        debit(user_id, price, f"Reservation: {product['name']}", created_by,
              reservation_id=reservation_id)

        db.execute('UPDATE reservations SET qr_code = ? WHERE id = ?',
                   (generate_reservation_qr_code(reservation_id, user_id), reservation_id))

        record_status_change(db, reservation_id, None, 'CONFIRMED', created_by, 'Reservation created')

    logger.info("Reservation %s created for product %s (%s -> %s, %s credits)",
                reservation_id, product_id, start, end, price)

    reservation = get_reservation_by_id(reservation_id)
    log_audit('CREATE', 'reservation', reservation_id, after={
        'product_id': product_id,
        'start_date': reservation['start_date'],
        'end_date': reservation['end_date'],
        'credits_charged': price,
    })
    emit(reservation_confirmed, 'reservation', reservation=reservation)
    return reservation


# =============================================================================
# CHECKOUT / RETURN
# =============================================================================

def checkout_reservation(reservation_id: int, performed_by: str, notes: str = None) -> dict:
    """
    Hand the product over: CONFIRMED -> CHECKED_OUT.

    Raises:
        NotFoundError: Unknown reservation
        InvalidTransitionError: Not CONFIRMED
    """
    with transaction() as db:
        reservation = get_reservation_or_404(reservation_id, conn=db)
        validate_state_transition(reservation['status'], 'CHECKED_OUT')

        db.execute('''
            UPDATE reservations
            SET status = 'CHECKED_OUT', checked_out_at = ?, checked_out_by = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (get_now_iso(), performed_by, reservation_id))

        create_movement(reservation['product_id'], 'CHECKOUT', performed_by,
                        reservation_id=reservation_id, notes=notes)
        record_status_change(db, reservation_id, 'CONFIRMED', 'CHECKED_OUT', performed_by, notes)

    reservation = get_reservation_by_id(reservation_id)
    log_audit('CHECKOUT', 'reservation', reservation_id,
              before={'status': 'CONFIRMED'}, after={'status': 'CHECKED_OUT'})
    emit(reservation_checked_out, 'reservation', reservation=reservation)
    return reservation


def return_reservation(reservation_id: int, performed_by: str, condition: str = 'OK',
                       notes: str = None, photos: list = None) -> dict:
    """
    Take the product back: CHECKED_OUT -> RETURNED.

    A damage condition is recorded but never blocks the return.

    Raises:
        ValidationError: Unknown condition
        NotFoundError: Unknown reservation
        InvalidTransitionError: Not CHECKED_OUT
    """
    if condition not in RETURN_CONDITIONS:
        raise ValidationError(
            f"Invalid condition: {condition} (expected one of {', '.join(RETURN_CONDITIONS)})"
        )

    with transaction() as db:
        reservation = get_reservation_or_404(reservation_id, conn=db)
        validate_state_transition(reservation['status'], 'RETURNED')

        db.execute('''
            UPDATE reservations
            SET status = 'RETURNED', returned_at = ?, returned_by = ?, return_condition = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (get_now_iso(), performed_by, condition, reservation_id))

        create_movement(reservation['product_id'], 'RETURN', performed_by,
                        reservation_id=reservation_id, condition=condition,
                        notes=notes, photos=photos)
        record_status_change(db, reservation_id, 'CHECKED_OUT', 'RETURNED', performed_by, notes)

    if condition != 'OK':
        logger.warning("Reservation %s returned with condition %s", reservation_id, condition)

    reservation = get_reservation_by_id(reservation_id)
    log_audit('RETURN', 'reservation', reservation_id,
              before={'status': 'CHECKED_OUT'},
              after={'status': 'RETURNED', 'condition': condition})
    emit(reservation_returned, 'reservation', reservation=reservation)
    return reservation


# =============================================================================
# CANCEL / REFUND
# =============================================================================

def apply_cancellation(db, reservation: dict, cancelled_by: str, reason: str = None) -> None:
    """
    CONFIRMED -> CANCELLED inside the caller's transaction.

    Raises:
        InvalidTransitionError: Not CONFIRMED
    """
    validate_state_transition(reservation['status'], 'CANCELLED')

    db.execute('''
        UPDATE reservations
        SET status = 'CANCELLED', cancelled_at = ?, cancelled_by = ?, cancel_reason = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (get_now_iso(), cancelled_by, reason, reservation['id']))

    record_status_change(db, reservation['id'], reservation['status'], 'CANCELLED',
                         cancelled_by, reason)
    reservation['status'] = 'CANCELLED'


def apply_refund(db, reservation: dict, refunded_by: str, amount: int = None,
                 reason: str = None) -> int:
    """
    Credit the owner back inside the caller's transaction.

    Args:
        db: Open connection
        reservation: Current reservation row (status updated in place)
        refunded_by: Actor
        amount: Credits to return; defaults to credits_charged
        reason: Ledger reason

    Returns:
        int: Refunded amount

    Raises:
        AlreadyRefundedError: refunded_at already set
        InvalidTransitionError: Not CANCELLED or RETURNED
        InvalidAmountError: amount outside 0..credits_charged
    """
    if reservation['refunded_at']:
        raise AlreadyRefundedError("Reservation has already been refunded",
                                   reservation_id=reservation['id'])

    validate_state_transition(reservation['status'], 'REFUNDED')

    charged = reservation['credits_charged']
    if amount is None:
        amount = charged
    if not isinstance(amount, int) or isinstance(amount, bool) or not 0 <= amount <= charged:
        raise InvalidAmountError(f"Refund amount must be between 0 and {charged}",
                                 credits_charged=charged)

    credit(reservation['user_id'], amount, reason or f"Refund: reservation #{reservation['id']}",
           refunded_by, reservation_id=reservation['id'])

    refunded_at = get_now_iso()
    db.execute('''
        UPDATE reservations
        SET status = 'REFUNDED', refund_amount = ?, refunded_at = ?, refunded_by = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (amount, refunded_at, refunded_by, reservation['id']))

    record_status_change(db, reservation['id'], reservation['status'], 'REFUNDED',
                         refunded_by, reason)
    reservation.update(status='REFUNDED', refund_amount=amount, refunded_at=refunded_at)
    return amount


def cancel_reservation(
    reservation_id: int,
    cancelled_by: str,
    reason: str = None,
    is_admin: bool = False,
    force_refund: bool = None,
    actor_id: int = None
) -> dict:
    """
    Cancel a CONFIRMED reservation, refunding it when the policy allows.

    The refund is automatic when an admin cancels or when the member cancels
    before the refund deadline; force_refund overrides the policy either way.
    A cancellation without refund leaves the reservation CANCELLED so an
    admin can refund it later.

    Args:
        reservation_id: Reservation to cancel
        cancelled_by: Actor username
        reason: Cancel reason
        is_admin: Actor is staff
        force_refund: True/False overrides the refund policy
        actor_id: Acting user's ID (members may only cancel their own)

    Returns:
        dict: Reservation with details

    Raises:
        ValidationError: force_refund is not a boolean
        NotFoundError, PermissionDeniedError, InvalidTransitionError
    """
    if force_refund is not None and not isinstance(force_refund, bool):
        raise ValidationError("force_refund must be true or false")

    with transaction() as db:
        reservation = get_reservation_or_404(reservation_id, conn=db)

        if not is_admin and reservation['user_id'] != actor_id:
            raise PermissionDeniedError("You can only cancel your own reservations")

        apply_cancellation(db, reservation, cancelled_by, reason)

        refund = force_refund
        if refund is None:
            refund = is_admin or is_refund_eligible(reservation)

        refunded_amount = None
        if refund:
            refunded_amount = apply_refund(db, reservation, cancelled_by,
                                           reason=f"Cancellation: reservation #{reservation_id}")

    logger.info("Reservation %s cancelled by %s (refund: %s)",
                reservation_id, cancelled_by, refunded_amount)

    reservation = get_reservation_by_id(reservation_id)
    log_audit('CANCEL', 'reservation', reservation_id,
              before={'status': 'CONFIRMED'},
              after={'status': reservation['status'], 'refund_amount': refunded_amount})
    emit(reservation_cancelled, 'reservation', reservation=reservation, reason=reason)
    if refunded_amount is not None:
        emit(reservation_refunded, 'reservation', reservation=reservation, amount=refunded_amount)
    return reservation


def refund_reservation(reservation_id: int, refunded_by: str, amount: int = None,
                       reason: str = None) -> dict:
    """
    Refund a CANCELLED or RETURNED reservation (admin).

    Raises:
        NotFoundError, AlreadyRefundedError, InvalidTransitionError, InvalidAmountError
    """
    with transaction() as db:
        reservation = get_reservation_or_404(reservation_id, conn=db)
        previous_status = reservation['status']
        refunded_amount = apply_refund(db, reservation, refunded_by, amount, reason)

    logger.info("Reservation %s refunded %s credits by %s", reservation_id, refunded_amount, refunded_by)

    reservation = get_reservation_by_id(reservation_id)
    log_audit('REFUND', 'reservation', reservation_id,
              before={'status': previous_status},
              after={'status': 'REFUNDED', 'refund_amount': refunded_amount})
    emit(reservation_refunded, 'reservation', reservation=reservation, amount=refunded_amount)
    return reservation


# =============================================================================
# RESCHEDULE
# =============================================================================

def update_reservation_dates(
    reservation_id: int,
    updated_by: str,
    start_date=None,
    end_date=None,
    notes: str = None,
    admin_notes: str = None
) -> dict:
    """
    Move or extend an active reservation (admin).

    A CHECKED_OUT reservation keeps its start date; only the return date can
    move. credits_charged is not recomputed.

    Args:
        reservation_id: Reservation to change
        updated_by: Actor username
        start_date: New first day (optional)
        end_date: New last day (optional)
        notes: Replacement member notes (optional)
        admin_notes: Replacement staff notes (optional)

    Returns:
        dict: Reservation with details

    Raises:
        NotFoundError, InvalidTransitionError, ValidationError, ConflictError
    """
    with transaction() as db:
        reservation = get_reservation_or_404(reservation_id, conn=db)
        if reservation['status'] not in ('CONFIRMED', 'CHECKED_OUT'):
            raise InvalidTransitionError(
                f"Cannot reschedule a {reservation['status']} reservation",
                from_status=reservation['status']
            )

        old_start = parse_date(reservation['start_date'])
        old_end = parse_date(reservation['end_date'])
        start = parse_date(start_date, 'start_date') if start_date else old_start
        end = parse_date(end_date, 'end_date') if end_date else old_end

        if reservation['status'] == 'CHECKED_OUT' and start != old_start:
            raise ValidationError("Start date cannot change once the product is checked out")

        product = get_product_or_404(reservation['product_id'], conn=db)
        validate_booking_dates(product, start, end, is_admin=True,
                               check_start_day=start != old_start,
                               check_end_day=end != old_end)

        _raise_if_conflicting(db, reservation['product_id'], start, end,
                              exclude_reservation_id=reservation_id)

        db.execute('''
            UPDATE reservations
            SET start_date = ?, end_date = ?,
                notes = COALESCE(?, notes), admin_notes = COALESCE(?, admin_notes),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (start.isoformat(), end.isoformat(), notes, admin_notes, reservation_id))

    log_audit('UPDATE', 'reservation', reservation_id,
              before={'start_date': old_start, 'end_date': old_end},
              after={'start_date': start, 'end_date': end})
    return get_reservation_by_id(reservation_id)


# =============================================================================
# EXTENSION
# =============================================================================

def _plan_extension(db, reservation: dict, new_end) -> dict:
    """
    Rules for pushing back the return date of a checked-out reservation.

    Returns:
        dict: reservation_id, current_end_date, new_end_date, days, cost

    Raises:
        InvalidTransitionError: Not CHECKED_OUT
        ValidationError: Not later, return weekday or max duration broken
        PriceHiddenError: Product price is hidden
        ConflictError: Another reservation or a maintenance on the added days
    """
    if reservation['status'] != 'CHECKED_OUT':
        raise InvalidTransitionError("Only a checked-out reservation can be extended",
                                     from_status=reservation['status'])

    start = parse_date(reservation['start_date'])
    old_end = parse_date(reservation['end_date'])
    if new_end <= old_end:
        raise ValidationError("New end date must be after the current end date")

    product = get_product_or_404(reservation['product_id'], conn=db)
    validate_booking_dates(product, start, new_end, is_admin=True, check_start_day=False)
    cost = extension_cost(start, old_end, new_end, product['price_credits'], product['credit_period'])

    _raise_if_conflicting(db, reservation['product_id'], old_end + timedelta(days=1), new_end,
                          exclude_reservation_id=reservation['id'])

    return {
        'reservation_id': reservation['id'],
        'product_name': product['name'],
        'current_end_date': old_end.isoformat(),
        'new_end_date': new_end.isoformat(),
        'days': (new_end - old_end).days,
        'cost': cost,
    }


def check_extension(reservation_id: int, new_end_date) -> dict:
    """
    Whether a reservation can be extended to new_end_date, and at what cost.

    Nothing is written. A refusal is reported in the result, not raised.

    Returns:
        dict: possible, and either the plan (days, cost, balance) or
              reason and code of the first rule broken

    Raises:
        NotFoundError: Unknown reservation
        ValidationError: Malformed date
    """
    new_end = parse_date(new_end_date, 'new_end_date')
    reservation = get_reservation_or_404(reservation_id)

    try:
        plan = _plan_extension(get_db(), reservation, new_end)
    except LendingError as e:
        return {'possible': False, 'reason': e.message, 'code': e.code, **e.details}

    balance = get_balance(reservation['user_id'])
    if balance < plan['cost']:
        return {
            'possible': False,
            'reason': 'Insufficient credits',
            'code': InsufficientCreditsError.code,
            'cost': plan['cost'],
            'balance': balance,
            'missing': plan['cost'] - balance,
        }

    return {'possible': True, **plan, 'balance': balance}


def extend_reservation(
    reservation_id: int,
    new_end_date,
    performed_by: str,
    actor_id: int = None,
    is_admin: bool = False
) -> dict:
    """
    Push back the return date of a CHECKED_OUT reservation and charge the
    extra days to its owner.

    The conflict check and the debit run in one transaction. credits_charged
    keeps the booking price; the extra credits go to total_extension_cost.

    Args:
        reservation_id: Reservation to extend
        new_end_date: New last day, after the current one
        performed_by: Actor username
        actor_id: Acting user's ID (members may only extend their own)
        is_admin: Actor is staff

    Returns:
        dict: Reservation with details

    Raises:
        NotFoundError, PermissionDeniedError, InvalidTransitionError,
        ValidationError, PriceHiddenError, ConflictError, InsufficientCreditsError
    """
    new_end = parse_date(new_end_date, 'new_end_date')

    with transaction() as db:
        reservation = get_reservation_or_404(reservation_id, conn=db)
        if not is_admin and reservation['user_id'] != actor_id:
            raise PermissionDeniedError("You can only extend your own reservations")

        plan = _plan_extension(db, reservation, new_end)

        debit(reservation['user_id'], plan['cost'], f"Extension: {plan['product_name']}",
              performed_by, reservation_id=reservation_id)

        db.execute('''
            UPDATE reservations
            SET end_date = ?,
                total_extension_cost = total_extension_cost + ?,
                extension_count = extension_count + 1,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (new_end.isoformat(), plan['cost'], reservation_id))

    logger.info("Reservation %s extended to %s by %s (%s credits)",
                reservation_id, new_end, performed_by, plan['cost'])

    reservation = get_reservation_by_id(reservation_id)
    log_audit('EXTEND', 'reservation', reservation_id,
              before={'end_date': plan['current_end_date']},
              after={'end_date': plan['new_end_date'], 'days': plan['days'], 'cost': plan['cost']})
    emit(reservation_extended, 'reservation', reservation=reservation,
         previous_end_date=plan['current_end_date'], cost=plan['cost'])
    return reservation
