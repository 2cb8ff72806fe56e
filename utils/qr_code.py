"""
Signed reservation QR tokens.

Format: R.<reservation_id>.<user_id>.<signature>, where the signature is the
first 20 hex characters of HMAC-SHA256 over "R:<reservation_id>:<user_id>".
"""

import hashlib
import hmac

from flask import current_app

from models.errors import ValidationError

QR_PREFIX = 'R'
SIGNATURE_LENGTH = 20


def _sign(reservation_id, user_id) -> str:
    secret = current_app.config['QR_CODE_SECRET'].encode('utf-8')
    payload = f'{QR_PREFIX}:{reservation_id}:{user_id}'.encode('utf-8')
    return hmac.new(secret, payload, hashlib.sha256).hexdigest()[:SIGNATURE_LENGTH]


def generate_reservation_qr_code(reservation_id: int, user_id: int) -> str:
    """Build the signed token printed on the reservation QR code."""
    return f'{QR_PREFIX}.{reservation_id}.{user_id}.{_sign(reservation_id, user_id)}'


def verify_reservation_qr_code(code: str) -> tuple:
    """
    Verify a token and extract its ids.

    Returns:
        tuple: (reservation_id, user_id) as ints

    Raises:
        ValidationError: Malformed or tampered token
    """
    parts = (code or '').split('.')
    if len(parts) != 4 or parts[0] != QR_PREFIX:
        raise ValidationError("Invalid reservation QR code format")

    _, reservation_id, user_id, signature = parts
    if not hmac.compare_digest(signature, _sign(reservation_id, user_id)):
        raise ValidationError("Invalid or tampered QR code")

    try:
        return int(reservation_id), int(user_id)
    except ValueError:
        raise ValidationError("Invalid reservation QR code format")


def is_reservation_qr_code(code: str) -> bool:
    """True if the string looks like a reservation token."""
    return bool(code) and code.startswith(f'{QR_PREFIX}.')
