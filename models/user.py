"""
User model and data access functions.
Handles user authentication, CRUD operations, and Flask-Login integration.
"""

from werkzeug.security import generate_password_hash, check_password_hash

from database import get_db, transaction
from utils.validators import validate_email, validate_password, sanitize_input

ROLES = ('admin', 'member')


class User:
    """
    User class for Flask-Login integration.
    Wraps database row dictionary with required Flask-Login properties.
    """

    def __init__(self, user_dict):
        """
        Initialize User from database row.

        Args:
            user_dict: Dictionary with user data from database
        """
        self.id = user_dict['id']
        self.username = user_dict['username']
        self.email = user_dict['email']
        self.full_name = user_dict['full_name']
        self.role = user_dict['role']
        self.active = user_dict['active']
        self.credit_balance = user_dict['credit_balance']
        self.created_at = user_dict['created_at']
        self.last_login = user_dict.get('last_login')

    @property
    def is_authenticated(self):
        """Required by Flask-Login."""
        return True

    @property
    def is_active(self):
        """Required by Flask-Login."""
        return self.active == 1

    @property
    def is_anonymous(self):
        """Required by Flask-Login."""
        return False

    @property
    def is_admin(self):
        return self.role == 'admin'

    def get_id(self):
        """Required by Flask-Login. Returns user ID as unicode string."""
        return str(self.id)


def get_user_by_id(user_id: int) -> dict:
    """
    Get user by ID.

    Args:
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()
    return dict(row) if row else None


def get_user_by_username(username: str) -> dict:
    """
    Get user by username.

    Args:
        username: Username to search for

    Returns:
        User dict or None if not found
    """
    db = get_db()
    row = db.execute('SELECT * FROM users WHERE username = ?', (username,)).fetchone()
    return dict(row) if row else None


def create_user(username: str, email: str, password: str, full_name: str = None,
                role: str = 'member', credit_balance: int = 0) -> int:
    """
    Create new user with hashed password.

    Args:
        username: Unique username
        email: Unique email
        password: Plain text password (will be hashed)
        full_name: User's full name
        role: 'admin' or 'member'
        credit_balance: Opening balance

    Returns:
        New user ID

    Raises:
        ValueError: Bad username, email, password or role, or a negative opening balance
        sqlite3.IntegrityError if username or email already exists
    """
    username = sanitize_input(username, max_length=50)
    if not username:
        raise ValueError("Username is required")
    if not validate_email(email):
        raise ValueError(f"Invalid email address: {email}")
    valid, error = validate_password(password)
    if not valid:
        raise ValueError(error)
    full_name = sanitize_input(full_name, max_length=100) or None
    if role not in ROLES:
        raise ValueError(f"Invalid role: {role}")
    if credit_balance < 0:
        raise ValueError("Opening balance cannot be negative")

    password_hash = generate_password_hash(password)

    with transaction() as db:
        cursor = db.execute('''
            INSERT INTO users (username, email, password_hash, full_name, role, credit_balance)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (username, email, password_hash, full_name, role, credit_balance))
        return cursor.lastrowid


def set_user_active(user_id: int, active: bool) -> bool:
    """
    Enable or disable a user (never deleted: reservations reference it).

    Returns:
        True if updated successfully
    """
    with transaction() as db:
        cursor = db.execute('UPDATE users SET active = ? WHERE id = ?',
                            (1 if active else 0, user_id))
        return cursor.rowcount > 0


def update_last_login(user_id: int) -> None:
    """
    Update last login timestamp.

    Args:
        user_id: User ID
    """
    with transaction() as db:
        db.execute('UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE id = ?', (user_id,))


def check_password(user_dict: dict, password: str) -> bool:
    """
    Verify password against stored hash.

    Args:
        user_dict: User dictionary with password_hash
        password: Plain text password to check

    Returns:
        True if password matches
    """
    return check_password_hash(user_dict['password_hash'], password)
