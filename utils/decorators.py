"""
Route decorators for authentication and authorization.
Provides role-based access control for routes.
"""

from functools import wraps
from flask_login import login_required, current_user

from utils.api_response import api_error
from utils.messages import get_message


def admin_required(func):
    """
    Decorator to restrict a route to admin users.

    Usage:
        @bp.route('/maintenance/<int:maintenance_id>/end', methods=['POST'])
        @login_required
        @admin_required
        def end_maintenance(maintenance_id):
            ...
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            return api_error(get_message('permission_denied'), status=403, code='FORBIDDEN')
        return func(*args, **kwargs)
    return wrapper


# Re-export login_required for convenience
__all__ = ['login_required', 'admin_required']
