"""
Database seed data.
Initial data population for fresh database installations.
"""

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data."""

    # 1. Default admin user (change password after first login)
    db.execute('''
        INSERT INTO users (username, email, password_hash, full_name, role, credit_balance)
        VALUES (?, ?, ?, ?, 'admin', 0)
    ''', ('admin', 'admin@lending.local', generate_password_hash('admin123'), 'Administrator'))

    # 2. Sections
    # Weekday codes are ISO: Monday=1 .. Sunday=7, empty means any day
    sections_data = [
        ('General', 'Default section, any checkout/return day', '', ''),
        ('Audio-Video', 'Checkout on Friday, return on Monday', '5', '1'),
        ('Outdoor', 'Checkout and return on weekdays', '1,2,3,4,5', '1,2,3,4,5'),
    ]

    for name, description, days_out, days_in in sections_data:
        db.execute('''
            INSERT INTO sections (name, description, allowed_days_out, allowed_days_in)
            VALUES (?, ?, ?, ?)
        ''', (name, description, days_out, days_in))
