"""
Standardized API response helpers.

Provides consistent JSON response format across all API endpoints:

    Success:  {"success": true, "data": {...}, "message": "..."}
    Error:    {"success": false, "error": "message", "code": "ERROR_CODE"}
    Warning:  {"success": true, "data": {...}, "warning": "..."}

Usage:
    from utils.api_response import api_success, api_error, api_error_from

    return api_success(data={'id': 1}, message='Reservation created')
    return api_error('start_date is required', status=400)

    try:
        ...
    except LendingError as e:
        return api_error_from(e)
"""

from flask import jsonify
from typing import Any


def api_success(
    data: dict | list | None = None,
    message: str | None = None,
    warning: str | None = None,
    status: int = 200,
    **extra_fields: Any
) -> tuple:
    """
    Build a standardized success JSON response.

    Args:
        data: Optional payload to include as 'data' key.
        message: Optional success message.
        warning: Optional warning message.
        status: HTTP status code (default 200).
        **extra_fields: Additional top-level fields (e.g. pagination).

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': True}

    if data is not None:
        response['data'] = data

    if message:
        response['message'] = message

    if warning:
        response['warning'] = warning

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_error(error: str, status: int = 400, code: str = 'ERROR', **extra_fields: Any) -> tuple:
    """
    Build a standardized error JSON response.

    Args:
        error: Error message.
        status: HTTP status code (default 400).
        code: Machine-readable error code.
        **extra_fields: Additional top-level fields (e.g., conflicts).

    Returns:
        Tuple of (Response, status_code)
    """
    response = {'success': False, 'error': error, 'code': code}

    if extra_fields:
        response.update(extra_fields)

    return jsonify(response), status


def api_error_from(exc) -> tuple:
    """
    Translate a LendingError into an error response.

    The error's details (conflicts, balance, ...) are merged at top level.
    """
    return api_error(exc.message, status=exc.status_code, code=exc.code, **exc.details)
