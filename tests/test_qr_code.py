"""
Tests for signed reservation QR tokens.
"""

import pytest

from models.errors import ValidationError
from utils.qr_code import (
    generate_reservation_qr_code,
    verify_reservation_qr_code,
    is_reservation_qr_code,
)


class TestReservationQrCode:
    """Tests for token signing and verification."""

    def test_format(self, app):
        """R.<reservation>.<user>.<20 hex chars>."""
        code = generate_reservation_qr_code(12, 34)
        prefix, reservation_id, user_id, signature = code.split('.')
        assert (prefix, reservation_id, user_id) == ('R', '12', '34')
        assert len(signature) == 20
        int(signature, 16)

    def test_verify(self, app):
        """A generated token verifies to its ids."""
        assert verify_reservation_qr_code(generate_reservation_qr_code(12, 34)) == (12, 34)

    def test_tampered_ids(self, app):
        """Changing an id invalidates the signature."""
        code = generate_reservation_qr_code(12, 34)
        tampered = code.replace('R.12.', 'R.13.')
        with pytest.raises(ValidationError):
            verify_reservation_qr_code(tampered)

    def test_other_secret(self, app):
        """Tokens signed with another secret are rejected."""
        code = generate_reservation_qr_code(12, 34)
        app.config['QR_CODE_SECRET'] = 'rotated'
        with pytest.raises(ValidationError):
            verify_reservation_qr_code(code)

    def test_malformed(self, app):
        """Wrong shape or prefix."""
        for code in ('', None, 'R.12.34', 'X.12.34.abcdef', 'R.a.b.c.d'):
            with pytest.raises(ValidationError):
                verify_reservation_qr_code(code)

    def test_is_reservation_qr_code(self):
        """Prefix detection."""
        assert is_reservation_qr_code('R.1.2.abc') is True
        assert is_reservation_qr_code('U.1') is False
        assert is_reservation_qr_code('') is False
