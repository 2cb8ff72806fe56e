"""
Authentication routes: login, logout, current user, CSRF token.
JSON endpoints for the lending API clients.
"""

from flask import Blueprint
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf

from blueprints.auth.forms import LoginForm
from models.user import User, get_user_by_username, update_last_login, check_password
from utils.api_response import api_success, api_error
from utils.messages import get_message

auth_bp = Blueprint('auth', __name__)


def _user_payload(user) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'full_name': user.full_name,
        'role': user.role,
        'credit_balance': user.credit_balance,
    }


@auth_bp.route('/csrf-token')
def csrf_token():
    """Issue a CSRF token for the X-CSRFToken header."""
    return api_success(data={'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with username and password.

    Request body (JSON or form):
        username, password, remember_me (optional)
    """
    form = LoginForm()

    if not form.validate_on_submit():
        errors = {field: messages[0] for field, messages in form.errors.items()}
        return api_error(get_message('bad_request'), status=400,
                         code='VALIDATION_ERROR', fields=errors)

    user_dict = get_user_by_username(form.username.data)

    if user_dict is None or not check_password(user_dict, form.password.data):
        return api_error(get_message('invalid_credentials'), status=401, code='UNAUTHORIZED')

    if not user_dict.get('active'):
        return api_error(get_message('account_disabled'), status=403, code='FORBIDDEN')

    user = User(user_dict)
    login_user(user, remember=form.remember_me.data)
    update_last_login(user.id)

    return api_success(
        data=_user_payload(user),
        message=get_message('login_success', name=user.full_name or user.username)
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logout current user."""
    logout_user()
    return api_success(message=get_message('logout_success'))


@auth_bp.route('/me')
@login_required
def me():
    """Current user with a fresh credit balance."""
    from models.user import get_user_by_id

    return api_success(data=_user_payload(User(get_user_by_id(current_user.id))))
