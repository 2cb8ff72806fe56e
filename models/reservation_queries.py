"""
Reservation read queries.
Lookups and filtered listing with pagination.
"""

from database import get_db
from .errors import NotFoundError

_SELECT_WITH_DETAILS = '''
    SELECT r.*,
           u.username, u.full_name as user_full_name,
           p.name as product_name, p.reference as product_reference,
           s.name as section_name
    FROM reservations r
    JOIN users u ON r.user_id = u.id
    JOIN products p ON r.product_id = p.id
    JOIN sections s ON p.section_id = s.id
'''


def get_reservation_by_id(reservation_id: int) -> dict:
    """
    Get reservation with user and product details.

    Args:
        reservation_id: Reservation ID

    Returns:
        dict or None if not found
    """
    db = get_db()
    row = db.execute(_SELECT_WITH_DETAILS + ' WHERE r.id = ?', (reservation_id,)).fetchone()
    return dict(row) if row else None


def get_reservation_or_404(reservation_id: int, conn=None) -> dict:
    """Plain reservation row; raises NotFoundError when missing."""
    db = conn or get_db()
    row = db.execute('SELECT * FROM reservations WHERE id = ?', (reservation_id,)).fetchone()
    if not row:
        raise NotFoundError("Reservation not found", reservation_id=reservation_id)
    return dict(row)


def get_reservations_filtered(
    user_id: int = None,
    product_id: int = None,
    status: str = None,
    date_from: str = None,
    date_to: str = None,
    page: int = 1,
    per_page: int = 20
) -> dict:
    """
    Get filtered reservations with pagination (for list view).

    Args:
        user_id: Owner filter
        product_id: Product filter
        status: Status filter
        date_from: Reservations ending on or after this date
        date_to: Reservations starting on or before this date
        page: Page number
        per_page: Items per page

    Returns:
        dict: {items: list, total: int, page: int, per_page: int, pages: int}
    """
    db = get_db()

    where = ' WHERE 1=1'
    params = []

    if user_id:
        where += ' AND r.user_id = ?'
        params.append(user_id)

    if product_id:
        where += ' AND r.product_id = ?'
        params.append(product_id)

    if status:
        where += ' AND r.status = ?'
        params.append(status)

    if date_from:
        where += ' AND r.end_date >= ?'
        params.append(date_from)

    if date_to:
        where += ' AND r.start_date <= ?'
        params.append(date_to)

    total = db.execute('SELECT COUNT(*) as total FROM reservations r' + where,
                       params).fetchone()['total']

    page = max(page, 1)
    query = _SELECT_WITH_DETAILS + where
    query += ' ORDER BY r.start_date DESC, r.id DESC'
    query += ' LIMIT ? OFFSET ?'

    rows = db.execute(query, params + [per_page, (page - 1) * per_page]).fetchall()

    return {
        'items': [dict(row) for row in rows],
        'total': total,
        'page': page,
        'per_page': per_page,
        'pages': (total + per_page - 1) // per_page
    }
