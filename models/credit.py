"""
Credit ledger.

Balances live on users.credit_balance; every change appends one row to
credit_transactions with the balance after the change. Debits use a single
conditional UPDATE so the balance can never go negative, even with two
writers racing.
"""

import logging

from database import get_db, transaction
from utils.audit import log_audit
from .errors import InsufficientCreditsError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ('RESERVATION', 'REFUND', 'ADJUSTMENT')


def get_balance(user_id: int) -> int:
    """
    Current credit balance of a user.

    Raises:
        NotFoundError: Unknown user
    """
    db = get_db()
    row = db.execute('SELECT credit_balance FROM users WHERE id = ?', (user_id,)).fetchone()
    if not row:
        raise NotFoundError("User not found", user_id=user_id)
    return row['credit_balance']


def _append_transaction(db, user_id, amount, tx_type, reason, reservation_id, performed_by) -> int:
    balance = db.execute('SELECT credit_balance FROM users WHERE id = ?',
                         (user_id,)).fetchone()['credit_balance']
    cursor = db.execute('''
        INSERT INTO credit_transactions
        (user_id, amount, balance_after, type, reason, reservation_id, performed_by)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (user_id, amount, balance, tx_type, reason, reservation_id, performed_by))
    return cursor.lastrowid


def debit(user_id: int, amount: int, reason: str, performed_by: str,
          reservation_id: int = None, tx_type: str = 'RESERVATION') -> int:
    """
    Debit credits if the balance covers the amount.

    Joins the caller's transaction when one is open, so a booking's debit
    and insert commit or roll back together.

    Args:
        user_id: User to charge
        amount: Credits (>= 0); 0 still records a ledger row
        reason: Ledger reason
        performed_by: Actor
        reservation_id: Related reservation (optional)
        tx_type: Ledger type

    Returns:
        int: New balance

    Raises:
        ValidationError: Negative amount
        InsufficientCreditsError: Balance lower than amount
    """
    if amount < 0:
        raise ValidationError("Debit amount cannot be negative")

    with transaction() as db:
        cursor = db.execute('''
            UPDATE users SET credit_balance = credit_balance - ?
            WHERE id = ? AND credit_balance >= ?
        ''', (amount, user_id, amount))

        if cursor.rowcount == 0:
            row = db.execute('SELECT credit_balance FROM users WHERE id = ?', (user_id,)).fetchone()
            if not row:
                raise NotFoundError("User not found", user_id=user_id)
            raise InsufficientCreditsError(
                f"Insufficient credits: {amount} required, {row['credit_balance']} available",
                required=amount,
                available=row['credit_balance']
            )

        _append_transaction(db, user_id, -amount, tx_type, reason, reservation_id, performed_by)
        return db.execute('SELECT credit_balance FROM users WHERE id = ?',
                          (user_id,)).fetchone()['credit_balance']


def credit(user_id: int, amount: int, reason: str, performed_by: str,
           reservation_id: int = None, tx_type: str = 'REFUND') -> int:
    """
    Add credits to a user's balance.

    Returns:
        int: New balance

    Raises:
        ValidationError: Negative amount
        NotFoundError: Unknown user
    """
    if amount < 0:
        raise ValidationError("Credit amount cannot be negative")

    with transaction() as db:
        cursor = db.execute('UPDATE users SET credit_balance = credit_balance + ? WHERE id = ?',
                            (amount, user_id))
        if cursor.rowcount == 0:
            raise NotFoundError("User not found", user_id=user_id)

        _append_transaction(db, user_id, amount, tx_type, reason, reservation_id, performed_by)
        return db.execute('SELECT credit_balance FROM users WHERE id = ?',
                          (user_id,)).fetchone()['credit_balance']


def adjust_credits(user_id: int, amount: int, reason: str, performed_by: str) -> int:
    """
    Admin adjustment by a signed amount.

    Returns:
        int: New balance

    Raises:
        ValidationError: Zero amount or missing reason
        InsufficientCreditsError: Negative adjustment larger than the balance
    """
    if not isinstance(amount, int) or amount == 0:
        raise ValidationError("Adjustment amount must be a non-zero integer")
    if not reason:
        raise ValidationError("Adjustment reason is required")

    if amount > 0:
        balance = credit(user_id, amount, reason, performed_by, tx_type='ADJUSTMENT')
    else:
        balance = debit(user_id, -amount, reason, performed_by, tx_type='ADJUSTMENT')

    logger.info("Credits adjusted for user %s by %+d (%s)", user_id, amount, performed_by)
    log_audit('ADJUST', 'credits', user_id,
              before={'credit_balance': balance - amount},
              after={'credit_balance': balance, 'reason': reason})
    return balance


def get_user_transactions(user_id: int, page: int = 1, limit: int = 20) -> dict:
    """
    Paginated ledger of a user, newest first.

    Returns:
        dict: transactions, total, page, pages
    """
    db = get_db()
    total = db.execute('SELECT COUNT(*) FROM credit_transactions WHERE user_id = ?',
                       (user_id,)).fetchone()[0]

    page = max(page, 1)
    rows = db.execute('''
        SELECT * FROM credit_transactions
        WHERE user_id = ?
        ORDER BY id DESC
        LIMIT ? OFFSET ?
    ''', (user_id, limit, (page - 1) * limit)).fetchall()

    return {
        'transactions': [dict(row) for row in rows],
        'total': total,
        'page': page,
        'pages': (total + limit - 1) // limit if limit else 1,
    }
