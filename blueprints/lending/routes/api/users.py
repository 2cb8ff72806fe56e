"""
User API routes (admin only): enable or disable an account.
"""

from flask import request
from flask_login import login_required, current_user

from models.errors import NotFoundError, ValidationError
from models.user import get_user_by_id, set_user_active
from utils.api_response import api_success, api_error
from utils.audit import log_audit
from utils.decorators import admin_required
from utils.messages import get_message

PUBLIC_FIELDS = ('id', 'username', 'email', 'full_name', 'role', 'credit_balance', 'active')


def register_routes(bp):
    """Register user API routes on the blueprint."""

    @bp.route('/users/<int:user_id>', methods=['PATCH'])
    @login_required
    @admin_required
    def update_user_route(user_id):
        """
        Enable or disable a user. Users are never deleted.

        Request body:
            active: true | false
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(get_message('data_required'), code='VALIDATION_ERROR')

        active = data.get('active')
        if not isinstance(active, bool):
            raise ValidationError("active must be true or false")
        if user_id == current_user.id and not active:
            raise ValidationError("You cannot disable your own account")

        before = get_user_by_id(user_id)
        if not before:
            raise NotFoundError("User not found", user_id=user_id)

        set_user_active(user_id, active)
        log_audit('UPDATE', 'user', user_id,
                  before={'active': bool(before['active'])}, after={'active': active})

        user = get_user_by_id(user_id)
        return api_success(data={field: user[field] for field in PUBLIC_FIELDS},
                           message=get_message('user_updated'))
