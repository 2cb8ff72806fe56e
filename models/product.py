"""
Catalog data access functions.
Handles sections (weekday rules) and products (duration and price rules).
"""

from database import get_db, transaction
from utils.calendar_rules import parse_weekday_codes, format_weekday_codes
from .errors import ValidationError, NotFoundError
from .pricing import CREDIT_PERIODS

PRODUCT_STATUSES = ('AVAILABLE', 'UNAVAILABLE', 'MAINTENANCE', 'ARCHIVED')


# =============================================================================
# SECTIONS
# =============================================================================

def get_all_sections(active_only: bool = True) -> list:
    """
    Get all sections.

    Args:
        active_only: If True, only return active sections

    Returns:
        List of section dicts
    """
    db = get_db()
    query = 'SELECT * FROM sections'
    if active_only:
        query += ' WHERE active = 1'
    query += ' ORDER BY name'
    return [dict(row) for row in db.execute(query).fetchall()]


def get_section_by_id(section_id: int) -> dict:
    """
    Get section by ID.

    Returns:
        Section dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM sections WHERE id = ?', (section_id,)).fetchone()
    return dict(row) if row else None


def create_section(name: str, description: str = None,
                   allowed_days_out=None, allowed_days_in=None) -> int:
    """
    Create a section.

    Args:
        name: Unique section name
        description: Optional description
        allowed_days_out: ISO weekday codes (CSV or list); empty = any day
        allowed_days_in: ISO weekday codes (CSV or list); empty = any day

    Returns:
        New section ID

    Raises:
        ValidationError: Missing name or weekday code outside 1..7
    """
    if not name:
        raise ValidationError("Section name is required")

    days_out = format_weekday_codes(parse_weekday_codes(allowed_days_out))
    days_in = format_weekday_codes(parse_weekday_codes(allowed_days_in))

    with transaction() as db:
        cursor = db.execute('''
            INSERT INTO sections (name, description, allowed_days_out, allowed_days_in)
            VALUES (?, ?, ?, ?)
        ''', (name, description, days_out, days_in))
        return cursor.lastrowid


# =============================================================================
# PRODUCTS
# =============================================================================

def validate_durations(min_duration: int, max_duration: int) -> None:
    """
    Enforce max_duration = 0 OR max_duration >= min_duration >= 1.

    Raises:
        ValidationError: On any violation
    """
    if not isinstance(min_duration, int) or min_duration < 1:
        raise ValidationError("min_duration must be an integer >= 1")
    if not isinstance(max_duration, int) or max_duration < 0:
        raise ValidationError("max_duration must be an integer >= 0 (0 = unbounded)")
    if max_duration != 0 and max_duration < min_duration:
        raise ValidationError("max_duration must be 0 or >= min_duration")


def _validate_price(price_credits, credit_period: str) -> None:
    if price_credits is not None and (not isinstance(price_credits, int) or price_credits < 0):
        raise ValidationError("price_credits must be a non-negative integer or null")
    if credit_period not in CREDIT_PERIODS:
        raise ValidationError(f"credit_period must be one of {', '.join(CREDIT_PERIODS)}")


def get_all_products(section_id: int = None, status: str = None) -> list:
    """
    Get products with their section rules.

    Args:
        section_id: Filter by section (optional)
        status: Filter by status (optional)

    Returns:
        List of product dicts
    """
    db = get_db()
    query = '''
        SELECT p.*, s.name as section_name,
               s.allowed_days_out, s.allowed_days_in
        FROM products p
        JOIN sections s ON p.section_id = s.id
        WHERE 1=1
    '''
    params = []

    if section_id:
        query += ' AND p.section_id = ?'
        params.append(section_id)

    if status:
        query += ' AND p.status = ?'
        params.append(status)

    query += ' ORDER BY p.name'
    return [dict(row) for row in db.execute(query, params).fetchall()]


def get_product_by_id(product_id: int, conn=None) -> dict:
    """
    Get product by ID, joined with its section's weekday rules.

    Args:
        product_id: Product ID
        conn: Optional connection (to read inside a write transaction)

    Returns:
        Product dict or None if not found
    """
    db = conn or get_db()
    row = db.execute('''
        SELECT p.*, s.name as section_name,
               s.allowed_days_out, s.allowed_days_in
        FROM products p
        JOIN sections s ON p.section_id = s.id
        WHERE p.id = ?
    ''', (product_id,)).fetchone()
    return dict(row) if row else None


def get_product_or_404(product_id: int, conn=None) -> dict:
    """get_product_by_id() that raises NotFoundError."""
    product = get_product_by_id(product_id, conn=conn)
    if not product:
        raise NotFoundError("Product not found", product_id=product_id)
    return product


def create_product(name: str, section_id: int, min_duration: int = 1,
                   max_duration: int = 0, price_credits: int = None,
                   credit_period: str = 'DAY', reference: str = None,
                   description: str = None, status: str = 'AVAILABLE') -> int:
    """
    Create a product.

    Args:
        name: Display name
        section_id: Owning section
        min_duration: Minimum booking length in days (>= 1)
        max_duration: Maximum booking length in days (0 = unbounded)
        price_credits: Credits per period; None hides the price
        credit_period: 'DAY' or 'WEEK'
        reference: Optional unique inventory reference
        description: Optional description
        status: Initial status

    Returns:
        New product ID

    Raises:
        ValidationError: Invalid durations, price, period or status
        NotFoundError: Unknown section
    """
    if not name:
        raise ValidationError("Product name is required")
    validate_durations(min_duration, max_duration)
    _validate_price(price_credits, credit_period)
    if status not in PRODUCT_STATUSES:
        raise ValidationError(f"Invalid product status: {status}")
    if not get_section_by_id(section_id):
        raise NotFoundError("Section not found", section_id=section_id)

    with transaction() as db:
        cursor = db.execute('''
            INSERT INTO products
            (name, reference, description, section_id, min_duration, max_duration,
             price_credits, credit_period, status)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (name, reference, description, section_id, min_duration, max_duration,
              price_credits, credit_period, status))
        return cursor.lastrowid


def update_product(product_id: int, **kwargs) -> bool:
    """
    Update product fields.

    Args:
        product_id: Product ID
        **kwargs: Fields to update (name, reference, description, section_id,
                  min_duration, max_duration, price_credits, credit_period, status)

    Returns:
        True if updated successfully

    Raises:
        NotFoundError: Unknown product
        ValidationError: The resulting product would break a catalog rule
    """
    product = get_product_or_404(product_id)

    allowed_fields = ['name', 'reference', 'description', 'section_id', 'min_duration',
                      'max_duration', 'price_credits', 'credit_period', 'status']
    updates = {field: kwargs[field] for field in allowed_fields if field in kwargs}

    if not updates:
        return False

    merged = {**product, **updates}
    validate_durations(merged['min_duration'], merged['max_duration'])
    _validate_price(merged['price_credits'], merged['credit_period'])
    if merged['status'] not in PRODUCT_STATUSES:
        raise ValidationError(f"Invalid product status: {merged['status']}")
    if 'section_id' in updates and not get_section_by_id(updates['section_id']):
        raise NotFoundError("Section not found", section_id=updates['section_id'])

    set_clause = ', '.join(f'{field} = ?' for field in updates)
    values = list(updates.values()) + [product_id]

    with transaction() as db:
        cursor = db.execute(
            f'UPDATE products SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            values
        )
        return cursor.rowcount > 0


def set_product_status(product_id: int, status: str) -> None:
    """
    Set product status; joins the caller's transaction if one is open.

    Raises:
        ValidationError: Unknown status
    """
    if status not in PRODUCT_STATUSES:
        raise ValidationError(f"Invalid product status: {status}")

    with transaction() as db:
        db.execute('''
            UPDATE products SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (status, product_id))


def get_product_day_rules(product: dict) -> tuple:
    """
    Weekday rules of a product's section.

    Returns:
        tuple: (allowed_days_out, allowed_days_in) as lists of ISO codes
    """
    return (
        parse_weekday_codes(product.get('allowed_days_out') or ''),
        parse_weekday_codes(product.get('allowed_days_in') or ''),
    )
