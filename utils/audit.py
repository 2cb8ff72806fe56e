"""
Audit logging utility functions and decorators.
Provides automatic and manual audit logging for tracking user actions.
"""

import logging
from functools import wraps
from flask import request
from flask_login import current_user

# Configure logger for audit operations
logger = logging.getLogger(__name__)


def log_audit(
    action: str,
    entity_type: str,
    entity_id: int = None,
    before: dict = None,
    after: dict = None,
    user_id: int = None
) -> int:
    """
    Log an audit entry manually.

    Captures the current user, IP address, and user agent from the Flask
    request context when there is one.

    Args:
        action: Action type (CREATE, UPDATE, CANCEL, REFUND, etc.)
        entity_type: Entity type (reservation, maintenance, product, etc.)
        entity_id: ID of the affected entity
        before: Dictionary with entity state before the change
        after: Dictionary with entity state after the change
        user_id: Override user ID (defaults to current_user.id)

    Returns:
        New audit log ID, or None if logging failed

    Example:
        log_audit(
            action='CANCEL',
            entity_type='reservation',
            entity_id=123,
            before={'status': 'CONFIRMED'},
            after={'status': 'CANCELLED'}
        )
    """
    try:
        from models.audit_log import create_audit_log

        ip_address = None
        user_agent = None

        try:
            if user_id is None and current_user and current_user.is_authenticated:
                user_id = current_user.id

            # Get client IP, considering proxies
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()
            user_agent = request.headers.get('User-Agent', '')[:255]
        except RuntimeError:
            # Outside request context (CLI sweep, tests)
            pass

        changes = None
        if before is not None or after is not None:
            changes = {
                'before': before,
                'after': after
            }

        return create_audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent
        )

    except Exception as e:
        # Audit logging should never fail the main operation
        logger.error(f"Failed to log audit entry: {e}", exc_info=True)
        return None


def audit_action(action_type: str, entity_type: str, entity_id_param: str = None):
    """
    Decorator to automatically log actions for route functions.

    Captures before/after state for UPDATE operations and logs the action
    after the decorated view returns a non-error response.

    Usage:
        @bp.route('/products/<int:product_id>', methods=['PATCH'])
        @login_required
        @admin_required
        @audit_action('UPDATE', 'product', entity_id_param='product_id')
        def update_product(product_id):
            ...

    Args:
        action_type: Action type (CREATE, UPDATE)
        entity_type: Entity type ('product' or 'section')
        entity_id_param: Name of the route parameter containing entity ID

    Returns:
        Decorator function
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            entity_id = kwargs.get(entity_id_param) if entity_id_param else None

            before_state = None
            if action_type == 'UPDATE' and entity_id:
                before_state = _get_entity_state(entity_type, entity_id)

            result = func(*args, **kwargs)

            if _is_error_response(result):
                return result

            if action_type == 'CREATE':
                entity_id = _extract_entity_id_from_result(result)

            after_state = _get_entity_state(entity_type, entity_id) if entity_id else None

            log_audit(
                action=action_type,
                entity_type=entity_type,
                entity_id=entity_id,
                before=before_state,
                after=after_state
            )

            return result

        return wrapper
    return decorator


def _get_entity_state(entity_type: str, entity_id: int) -> dict:
    """
    Fetch current state of an entity for before/after comparison.

    Returns:
        Dictionary with entity state, or None if not found
    """
    if entity_type == 'product':
        from models.product import get_product_by_id
        return get_product_by_id(entity_id)

    if entity_type == 'section':
        from models.product import get_section_by_id
        return get_section_by_id(entity_id)

    return None


def _is_error_response(result) -> bool:
    """True if a view result carries an HTTP status >= 400."""
    if isinstance(result, tuple) and len(result) >= 2:
        status_code = result[1]
        return isinstance(status_code, int) and status_code >= 400

    status_code = getattr(result, 'status_code', None)
    return isinstance(status_code, int) and status_code >= 400


def _extract_entity_id_from_result(result) -> int:
    """Read the created entity ID from an api_success() response."""
    response = result[0] if isinstance(result, tuple) else result
    if not hasattr(response, 'get_json'):
        return None

    json_data = response.get_json(silent=True) or {}
    data = json_data.get('data')
    if isinstance(data, dict) and 'id' in data:
        return data['id']
    return json_data.get('id')


__all__ = [
    'audit_action',
    'log_audit',
]
