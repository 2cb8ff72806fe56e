"""
Input validation helper functions.
Provides validation for common input types.
"""

import re
from datetime import date, datetime

from models.errors import ValidationError

TIME_PATTERN = re.compile(r'^([01][0-9]|2[0-3]):[0-5][0-9]$')


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def parse_date(value, field: str = 'date') -> date:
    """
    Parse a YYYY-MM-DD string (or pass a date through).

    Args:
        value: String or date
        field: Field name used in the error message

    Returns:
        date

    Raises:
        ValidationError: Missing or malformed value
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} is required")
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD")


def parse_optional_date(value, field: str = 'date'):
    """Like parse_date() but None/empty stays None (indefinite end)."""
    if value is None or value == '':
        return None
    return parse_date(value, field)


def validate_time(time_str: str) -> bool:
    """Validate an optional HH:MM display time."""
    if not time_str:
        return True
    return bool(TIME_PATTERN.match(time_str))


def validate_password(password: str, min_length: int = 6) -> tuple:
    """
    Validate password strength.

    Args:
        password: Password to validate
        min_length: Minimum password length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, 'Password is required'

    if len(password) < min_length:
        return False, f'Password must be at least {min_length} characters'

    return True, ''


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    # Strip whitespace
    sanitized = text.strip()

    # Limit length if specified
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
