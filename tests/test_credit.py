"""
Tests for the credit ledger.
"""

import pytest

from database import get_db
from models.credit import debit, credit, adjust_credits, get_balance, get_user_transactions
from models.errors import InsufficientCreditsError, NotFoundError, ValidationError


class TestDebitCredit:
    """Tests for balance changes."""

    def test_debit(self, app, make_member):
        """Debit lowers the balance and appends a ledger row."""
        user_id = make_member(credit_balance=20)
        assert debit(user_id, 15, 'Test', 'admin') == 5

        ledger = get_user_transactions(user_id)
        assert ledger['total'] == 1
        row = ledger['transactions'][0]
        assert row['amount'] == -15
        assert row['balance_after'] == 5
        assert row['type'] == 'RESERVATION'

    def test_debit_exact_balance(self, app, make_member):
        """Balance can reach zero."""
        user_id = make_member(credit_balance=10)
        assert debit(user_id, 10, 'Test', 'admin') == 0

    def test_debit_insufficient(self, app, make_member):
        """Balance never goes negative; nothing is recorded."""
        user_id = make_member(credit_balance=10)
        with pytest.raises(InsufficientCreditsError) as exc_info:
            debit(user_id, 11, 'Test', 'admin')
        assert exc_info.value.details == {'required': 11, 'available': 10}
        assert get_balance(user_id) == 10
        assert get_user_transactions(user_id)['total'] == 0

    def test_debit_negative(self, app, make_member):
        """Negative amounts are refused."""
        with pytest.raises(ValidationError):
            debit(make_member(), -1, 'Test', 'admin')

    def test_unknown_user(self, app):
        """Unknown users raise NotFoundError."""
        with pytest.raises(NotFoundError):
            debit(9999, 1, 'Test', 'admin')
        with pytest.raises(NotFoundError):
            credit(9999, 1, 'Test', 'admin')
        with pytest.raises(NotFoundError):
            get_balance(9999)

    def test_credit(self, app, make_member):
        """Credit raises the balance."""
        user_id = make_member(credit_balance=0)
        assert credit(user_id, 7, 'Refund', 'admin') == 7


class TestAdjustCredits:
    """Tests for admin adjustments."""

    def test_positive_and_negative(self, app, make_member):
        """Signed adjustments are recorded as ADJUSTMENT."""
        user_id = make_member(credit_balance=10)
        assert adjust_credits(user_id, 5, 'Bonus', 'admin') == 15
        assert adjust_credits(user_id, -12, 'Correction', 'admin') == 3

        types = {t['type'] for t in get_user_transactions(user_id)['transactions']}
        assert types == {'ADJUSTMENT'}

    def test_adjustment_audited(self, app, make_member):
        """Adjustments leave an audit entry."""
        user_id = make_member(credit_balance=10)
        adjust_credits(user_id, 5, 'Bonus', 'admin')
        row = get_db().execute(
            "SELECT * FROM audit_log WHERE entity_type = 'credits' AND entity_id = ?", (user_id,)
        ).fetchone()
        assert row['action'] == 'ADJUST'

    def test_requires_reason_and_amount(self, app, make_member):
        """Zero amount or empty reason are refused."""
        user_id = make_member()
        with pytest.raises(ValidationError):
            adjust_credits(user_id, 0, 'Nothing', 'admin')
        with pytest.raises(ValidationError):
            adjust_credits(user_id, 5, '', 'admin')

    def test_negative_below_zero(self, app, make_member):
        """Cannot adjust below zero."""
        user_id = make_member(credit_balance=3)
        with pytest.raises(InsufficientCreditsError):
            adjust_credits(user_id, -4, 'Too much', 'admin')


class TestPagination:
    """Tests for ledger pagination."""

    def test_pages(self, app, make_member):
        """Newest first, pages of the given size."""
        user_id = make_member(credit_balance=0)
        for amount in range(1, 6):
            credit(user_id, amount, f'Credit {amount}', 'admin')

        first = get_user_transactions(user_id, page=1, limit=2)
        assert first['total'] == 5
        assert first['pages'] == 3
        assert [t['amount'] for t in first['transactions']] == [5, 4]

        last = get_user_transactions(user_id, page=3, limit=2)
        assert [t['amount'] for t in last['transactions']] == [1]
