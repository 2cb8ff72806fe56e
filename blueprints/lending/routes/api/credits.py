"""
Credit API routes: own balance and ledger, admin adjustments.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from models.credit import get_balance, get_user_transactions, adjust_credits
from utils.api_response import api_success, api_error
from utils.decorators import admin_required
from utils.messages import get_message


def _balance_payload(user_id: int) -> dict:
    ledger = get_user_transactions(
        user_id,
        page=request.args.get('page', 1, type=int),
        limit=current_app.config.get('ITEMS_PER_PAGE', 20)
    )
    return {
        'user_id': user_id,
        'credit_balance': get_balance(user_id),
        **ledger,
    }


def register_routes(bp):
    """Register credit API routes on the blueprint."""

    @bp.route('/credits/me')
    @login_required
    def my_credits():
        """Balance and paginated ledger of the current user."""
        return api_success(data=_balance_payload(current_user.id))

    @bp.route('/users/<int:user_id>/credits')
    @login_required
    @admin_required
    def user_credits(user_id):
        """Balance and paginated ledger of any user."""
        return api_success(data=_balance_payload(user_id))

    @bp.route('/users/<int:user_id>/credits', methods=['POST'])
    @login_required
    @admin_required
    def adjust_user_credits(user_id):
        """
        Adjust a balance by a signed amount.

        Request body:
            amount: Non-zero integer (negative debits)
            reason: Required
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        balance = adjust_credits(user_id, data.get('amount'), data.get('reason'),
                                 current_user.username)
        return api_success(data={'user_id': user_id, 'credit_balance': balance},
                           message=get_message('credits_adjusted'))
