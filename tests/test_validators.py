"""
Tests for input validation utilities.
"""

import pytest
from datetime import date, datetime

from models.errors import ValidationError
from utils.validators import (
    validate_email,
    validate_password,
    validate_time,
    parse_date,
    parse_optional_date,
    sanitize_input
)


class TestValidateEmail:
    """Tests for email validation."""

    def test_valid_email(self):
        """Test valid email formats."""
        assert validate_email('user@example.com') is True
        assert validate_email('user.name@example.com') is True
        assert validate_email('user+tag@example.co.uk') is True

    def test_invalid_email(self):
        """Test invalid email formats."""
        assert validate_email('') is False
        assert validate_email(None) is False
        assert validate_email('invalid') is False
        assert validate_email('missing@domain') is False
        assert validate_email('spaces in@email.com') is False


class TestParseDate:
    """Tests for date parsing."""

    def test_string(self):
        """ISO strings become dates."""
        assert parse_date('2025-03-09') == date(2025, 3, 9)

    def test_date_passthrough(self):
        """Dates and datetimes pass through as dates."""
        assert parse_date(date(2025, 3, 9)) == date(2025, 3, 9)
        assert parse_date(datetime(2025, 3, 9, 15, 30)) == date(2025, 3, 9)

    def test_missing(self):
        """Missing values name the field."""
        with pytest.raises(ValidationError, match='start_date is required'):
            parse_date(None, 'start_date')

    def test_malformed(self):
        """Malformed values are rejected."""
        with pytest.raises(ValidationError):
            parse_date('09/03/2025')

    def test_optional(self):
        """Empty optional dates stay None."""
        assert parse_optional_date(None) is None
        assert parse_optional_date('') is None
        assert parse_optional_date('2025-03-09') == date(2025, 3, 9)


class TestValidateTime:
    """Tests for HH:MM display times."""

    def test_valid(self):
        """Empty is allowed, HH:MM is allowed."""
        assert validate_time(None) is True
        assert validate_time('09:30') is True
        assert validate_time('23:59') is True

    def test_invalid(self):
        """Out-of-range and malformed times."""
        assert validate_time('24:00') is False
        assert validate_time('9:30') is False
        assert validate_time('noon') is False


class TestValidatePassword:
    """Tests for password validation."""

    def test_valid_password(self):
        """Test valid passwords."""
        is_valid, msg = validate_password('password123')
        assert is_valid is True
        assert msg == ''

    def test_password_too_short(self):
        """Test password too short."""
        is_valid, msg = validate_password('12345')
        assert is_valid is False
        assert 'at least 6 characters' in msg

    def test_password_empty(self):
        """Test empty password."""
        is_valid, msg = validate_password('')
        assert is_valid is False
        assert 'required' in msg


class TestSanitizeInput:
    """Tests for input sanitization."""

    def test_trim_whitespace(self):
        """Test trimming whitespace."""
        assert sanitize_input('  hello  ') == 'hello'

    def test_limit_length(self):
        """Test limiting input length."""
        assert sanitize_input('hello world', max_length=5) == 'hello'

    def test_empty_input(self):
        """Test empty input handling."""
        assert sanitize_input('') == ''
        assert sanitize_input(None) == ''
