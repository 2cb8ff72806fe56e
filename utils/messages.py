"""
Centralized user-facing messages.
All API message strings live here for consistency.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome {name}',
    'logout_success': 'Signed out',
    'reservation_created': 'Reservation confirmed',
    'reservation_updated': 'Reservation updated',
    'reservation_checked_out': 'Product checked out',
    'reservation_returned': 'Product returned',
    'reservation_cancelled': 'Reservation cancelled',
    'reservation_cancelled_refunded': 'Reservation cancelled and {amount} credits refunded',
    'reservation_refunded': '{amount} credits refunded',
    'reservation_extended': 'Reservation extended to {end_date}',
    'maintenance_created': 'Maintenance scheduled; {count} reservations cancelled',
    'maintenance_updated': 'Maintenance updated',
    'maintenance_ended': 'Maintenance ended',
    'maintenance_deleted': 'Scheduled maintenance removed',
    'section_created': 'Section created',
    'product_created': 'Product created',
    'product_updated': 'Product updated',
    'credits_adjusted': 'Credit balance updated',
    'user_updated': 'User updated',

    # Error messages
    'invalid_credentials': 'Invalid username or password',
    'account_disabled': 'This account is disabled',
    'permission_denied': 'You do not have permission for this action',
    'data_required': 'Request body is required',
    'date_required': '{field} is required',
    'invalid_month': 'Invalid month: expected YYYY-MM',
    'invalid_time': 'Invalid {field}: expected HH:MM',
    'server_error': 'Internal server error',
    'not_found': 'Resource not found',
    'method_not_allowed': 'Method not allowed',
    'bad_request': 'Bad request',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message
