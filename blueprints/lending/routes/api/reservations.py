"""
Reservation API routes: booking, listing, lifecycle transitions and extensions.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from models.errors import PermissionDeniedError, ValidationError
from models.reservation import (
    create_reservation,
    get_reservation_or_404,
    get_reservation_by_id,
    get_reservations_filtered,
    get_status_history,
    checkout_reservation,
    return_reservation,
    cancel_reservation,
    refund_reservation,
    update_reservation_dates,
    check_extension,
    extend_reservation,
)
from utils.api_response import api_success, api_error
from utils.decorators import admin_required
from utils.messages import get_message
from utils.qr_code import verify_reservation_qr_code

SCAN_ACTIONS = ('checkout', 'return')


def _load_visible_reservation(reservation_id: int) -> dict:
    """Reservation with details if the current user may see it."""
    get_reservation_or_404(reservation_id)
    reservation = get_reservation_by_id(reservation_id)
    if not current_user.is_admin and reservation['user_id'] != current_user.id:
        raise PermissionDeniedError("You can only view your own reservations")
    return reservation


def register_routes(bp):
    """Register reservation API routes on the blueprint."""

    # ============================================================================
    # BOOKING
    # ============================================================================

    @bp.route('/reservations', methods=['POST'])
    @login_required
    def create_reservation_route():
        """
        Book a product.

        Request body:
            product_id: Product to book
            start_date: First day YYYY-MM-DD
            end_date: Last day YYYY-MM-DD (inclusive)
            start_time, end_time: Optional HH:MM
            notes: Optional
            user_id: Admin only, book on behalf of a member
            admin_notes: Admin only
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        for field in ('product_id', 'start_date', 'end_date'):
            if not data.get(field):
                return api_error(get_message('date_required', field=field), code='VALIDATION_ERROR')

        is_admin = current_user.is_admin
        user_id = data.get('user_id') if is_admin and data.get('user_id') else current_user.id

        reservation = create_reservation(
            user_id=user_id,
            product_id=data['product_id'],
            start_date=data['start_date'],
            end_date=data['end_date'],
            created_by=current_user.username,
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            notes=data.get('notes'),
            admin_notes=data.get('admin_notes') if is_admin else None,
            is_admin=is_admin
        )
        return api_success(data=reservation, message=get_message('reservation_created'), status=201)

    # ============================================================================
    # LISTING
    # ============================================================================

    @bp.route('/reservations')
    @login_required
    def list_reservations():
        """
        Paginated reservations. Members only see their own.

        Query params:
            user_id: Owner filter (admin only)
            product_id, status, date_from, date_to: Filters
            page: Page number
        """
        user_id = request.args.get('user_id', type=int) if current_user.is_admin else current_user.id

        result = get_reservations_filtered(
            user_id=user_id,
            product_id=request.args.get('product_id', type=int),
            status=request.args.get('status'),
            date_from=request.args.get('date_from'),
            date_to=request.args.get('date_to'),
            page=request.args.get('page', 1, type=int),
            per_page=current_app.config.get('ITEMS_PER_PAGE', 20)
        )
        return api_success(
            data=result['items'],
            total=result['total'],
            page=result['page'],
            per_page=result['per_page'],
            pages=result['pages']
        )

    @bp.route('/reservations/<int:reservation_id>')
    @login_required
    def reservation_detail(reservation_id):
        """Reservation with its status history."""
        reservation = _load_visible_reservation(reservation_id)
        reservation['history'] = get_status_history(reservation_id)
        return api_success(data=reservation)

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    @bp.route('/reservations/<int:reservation_id>/checkout', methods=['POST'])
    @login_required
    @admin_required
    def checkout_route(reservation_id):
        """Hand the product over."""
        data = request.get_json(silent=True) or {}
        reservation = checkout_reservation(reservation_id, current_user.username,
                                           notes=data.get('notes'))
        return api_success(data=reservation, message=get_message('reservation_checked_out'))

    @bp.route('/reservations/<int:reservation_id>/return', methods=['POST'])
    @login_required
    @admin_required
    def return_route(reservation_id):
        """
        Take the product back.

        Request body:
            condition: OK | MINOR_DAMAGE | MAJOR_DAMAGE | MISSING_PARTS | BROKEN (default OK)
            notes: Optional
            photos: Optional list of photo references
        """
        data = request.get_json(silent=True) or {}
        reservation = return_reservation(
            reservation_id,
            current_user.username,
            condition=data.get('condition', 'OK'),
            notes=data.get('notes'),
            photos=data.get('photos')
        )
        return api_success(data=reservation, message=get_message('reservation_returned'))

    @bp.route('/reservations/<int:reservation_id>/cancel', methods=['POST'])
    @login_required
    def cancel_route(reservation_id):
        """
        Cancel a confirmed reservation.

        Request body:
            reason: Optional
            force_refund: Admin only, true/false overrides the refund policy
        """
        data = request.get_json(silent=True) or {}
        is_admin = current_user.is_admin

        reservation = cancel_reservation(
            reservation_id,
            current_user.username,
            reason=data.get('reason'),
            is_admin=is_admin,
            force_refund=data.get('force_refund') if is_admin else None,
            actor_id=current_user.id
        )

        if reservation['refunded_at']:
            message = get_message('reservation_cancelled_refunded', amount=reservation['refund_amount'])
        else:
            message = get_message('reservation_cancelled')
        return api_success(data=reservation, message=message)

    @bp.route('/reservations/<int:reservation_id>/refund', methods=['POST'])
    @login_required
    @admin_required
    def refund_route(reservation_id):
        """
        Refund a cancelled or returned reservation.

        Request body:
            amount: Optional, defaults to the full charge
            reason: Optional
        """
        data = request.get_json(silent=True) or {}
        reservation = refund_reservation(
            reservation_id,
            current_user.username,
            amount=data.get('amount'),
            reason=data.get('reason')
        )
        return api_success(data=reservation,
                           message=get_message('reservation_refunded',
                                               amount=reservation['refund_amount']))

    @bp.route('/reservations/<int:reservation_id>', methods=['PATCH'])
    @login_required
    @admin_required
    def update_reservation_route(reservation_id):
        """
        Move or extend an active reservation.

        Request body:
            start_date, end_date, notes, admin_notes (all optional)
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        reservation = update_reservation_dates(
            reservation_id,
            current_user.username,
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            notes=data.get('notes'),
            admin_notes=data.get('admin_notes')
        )
        return api_success(data=reservation, message=get_message('reservation_updated'))

    # ============================================================================
    # EXTENSION
    # ============================================================================

    @bp.route('/reservations/<int:reservation_id>/extension')
    @login_required
    def extension_info(reservation_id):
        """
        Whether a checked-out reservation can be extended, and the cost.

        Query params:
            new_end_date: Requested last day YYYY-MM-DD
        """
        _load_visible_reservation(reservation_id)
        new_end_date = request.args.get('new_end_date')
        if not new_end_date:
            return api_error(get_message('date_required', field='new_end_date'), code='VALIDATION_ERROR')

        return api_success(data=check_extension(reservation_id, new_end_date))

    @bp.route('/reservations/<int:reservation_id>/extend', methods=['POST'])
    @login_required
    def extend_route(reservation_id):
        """
        Push back the return date and charge the extra days.

        Request body:
            new_end_date: New last day YYYY-MM-DD
        """
        data = request.get_json(silent=True) or {}
        if not data.get('new_end_date'):
            return api_error(get_message('date_required', field='new_end_date'), code='VALIDATION_ERROR')

        reservation = extend_reservation(
            reservation_id,
            data['new_end_date'],
            current_user.username,
            actor_id=current_user.id,
            is_admin=current_user.is_admin
        )
        return api_success(data=reservation,
                           message=get_message('reservation_extended', end_date=reservation['end_date']))

    # ============================================================================
    # QR SCAN
    # ============================================================================

    @bp.route('/reservations/scan', methods=['POST'])
    @login_required
    @admin_required
    def scan_route():
        """
        Checkout or return from a scanned QR token.

        Request body:
            code: Token read from the QR code
            action: checkout | return
            condition: Return condition (return only)
        """
        data = request.get_json(silent=True)
        if not data or not data.get('code'):
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        action = data.get('action', 'checkout')
        if action not in SCAN_ACTIONS:
            raise ValidationError(f"Invalid action: {action}")

        reservation_id, user_id = verify_reservation_qr_code(data['code'])
        reservation = get_reservation_or_404(reservation_id)
        if reservation['user_id'] != user_id:
            raise ValidationError("QR code does not match this reservation")

        if action == 'checkout':
            result = checkout_reservation(reservation_id, current_user.username,
                                          notes=data.get('notes'))
            message = get_message('reservation_checked_out')
        else:
            result = return_reservation(reservation_id, current_user.username,
                                        condition=data.get('condition', 'OK'),
                                        notes=data.get('notes'))
            message = get_message('reservation_returned')

        return api_success(data=result, message=message)
