"""
Database schema definitions.
Table creation, indexes, and structure management.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'audit_log',
        'movements',
        'credit_transactions',
        'reservation_status_history',
        'maintenances',
        'reservations',
        'products',
        'sections',
        'users'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users & credit balance
    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            full_name TEXT,
            role TEXT CHECK(role IN ('admin','member')) DEFAULT 'member',
            active INTEGER DEFAULT 1,
            credit_balance INTEGER NOT NULL DEFAULT 0 CHECK(credit_balance >= 0),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            last_login TIMESTAMP
        )
    ''')

    # 2. Catalog: sections carry the weekday rules, products the duration/price rules
    db.execute('''
        CREATE TABLE sections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            description TEXT,
            allowed_days_out TEXT DEFAULT '',
            allowed_days_in TEXT DEFAULT '',
            active INTEGER DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            reference TEXT UNIQUE,
            description TEXT,
            section_id INTEGER NOT NULL REFERENCES sections(id),
            min_duration INTEGER NOT NULL DEFAULT 1 CHECK(min_duration >= 1),
            max_duration INTEGER NOT NULL DEFAULT 0 CHECK(max_duration >= 0),
            price_credits INTEGER CHECK(price_credits IS NULL OR price_credits >= 0),
            credit_period TEXT CHECK(credit_period IN ('DAY','WEEK')) DEFAULT 'DAY',
            status TEXT CHECK(status IN ('AVAILABLE','UNAVAILABLE','MAINTENANCE','ARCHIVED'))
                DEFAULT 'AVAILABLE',
            last_condition TEXT,
            last_movement_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(max_duration = 0 OR max_duration >= min_duration)
        )
    ''')

    # 3. Reservations (permanent audit record, never deleted)
    db.execute('''
        CREATE TABLE reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            product_id INTEGER NOT NULL REFERENCES products(id),
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            start_time TEXT,
            end_time TEXT,
            status TEXT NOT NULL DEFAULT 'CONFIRMED'
                CHECK(status IN ('CONFIRMED','CHECKED_OUT','RETURNED','CANCELLED','REFUNDED')),
            credits_charged INTEGER NOT NULL CHECK(credits_charged >= 0),
            total_extension_cost INTEGER NOT NULL DEFAULT 0,
            extension_count INTEGER NOT NULL DEFAULT 0,
            refund_amount INTEGER,
            checked_out_at TIMESTAMP,
            checked_out_by TEXT,
            returned_at TIMESTAMP,
            returned_by TEXT,
            return_condition TEXT
                CHECK(return_condition IS NULL OR return_condition IN
                      ('OK','MINOR_DAMAGE','MAJOR_DAMAGE','MISSING_PARTS','BROKEN')),
            cancelled_at TIMESTAMP,
            cancelled_by TEXT,
            cancel_reason TEXT,
            refunded_at TIMESTAMP,
            refunded_by TEXT,
            notes TEXT,
            admin_notes TEXT,
            qr_code TEXT,
            created_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(end_date >= start_date)
        )
    ''')

    db.execute('''
        CREATE TABLE reservation_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id INTEGER NOT NULL REFERENCES reservations(id),
            from_status TEXT,
            to_status TEXT NOT NULL,
            changed_by TEXT,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 4. Maintenance windows (end_date NULL = indefinite)
    db.execute('''
        CREATE TABLE maintenances (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL REFERENCES products(id),
            start_date DATE NOT NULL,
            end_date DATE,
            reason TEXT,
            created_by TEXT NOT NULL,
            ended_at TIMESTAMP,
            ended_by TEXT,
            cancelled_reservations_count INTEGER NOT NULL DEFAULT 0,
            refunded_credits_total INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK(end_date IS NULL OR end_date >= start_date)
        )
    ''')

    # 5. Append-only credit ledger
    db.execute('''
        CREATE TABLE credit_transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            amount INTEGER NOT NULL,
            balance_after INTEGER NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('RESERVATION','REFUND','ADJUSTMENT')),
            reason TEXT,
            reservation_id INTEGER REFERENCES reservations(id),
            performed_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 6. Movement log (checkout / return)
    db.execute('''
        CREATE TABLE movements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_id INTEGER NOT NULL REFERENCES products(id),
            reservation_id INTEGER REFERENCES reservations(id),
            type TEXT NOT NULL CHECK(type IN ('CHECKOUT','RETURN')),
            condition TEXT DEFAULT 'OK',
            notes TEXT,
            photos TEXT,
            performed_by TEXT,
            performed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 7. Audit log
    db.execute('''
        CREATE TABLE audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER,
            user_id INTEGER REFERENCES users(id),
            changes TEXT,
            ip_address TEXT,
            user_agent TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create database indexes for performance."""

    # Conflict index lookups: product + status + date range
    db.execute('CREATE INDEX idx_reservations_product_status ON reservations(product_id, status)')
    db.execute('CREATE INDEX idx_reservations_dates ON reservations(start_date, end_date)')
    db.execute('CREATE INDEX idx_reservations_user ON reservations(user_id)')

    db.execute('CREATE INDEX idx_maintenances_product ON maintenances(product_id, ended_at)')
    db.execute('CREATE INDEX idx_maintenances_dates ON maintenances(start_date, end_date)')

    db.execute('CREATE INDEX idx_status_history_reservation ON reservation_status_history(reservation_id)')
    db.execute('CREATE INDEX idx_credit_transactions_user ON credit_transactions(user_id, created_at)')
    db.execute('CREATE INDEX idx_movements_product ON movements(product_id, performed_at)')

    db.execute('CREATE INDEX idx_audit_log_entity ON audit_log(entity_type, entity_id)')
    db.execute('CREATE INDEX idx_audit_log_created ON audit_log(created_at)')

    db.execute('CREATE INDEX idx_products_section ON products(section_id)')
