"""
Database connection management.
Handles per-context connections, write transactions, initialization and teardown.
"""

import logging
import sqlite3
from contextlib import contextmanager

from flask import g, current_app

logger = logging.getLogger(__name__)


def get_db():
    """
    Get the database connection for the current app context.

    Connections run in autocommit mode (isolation_level=None); writes that
    span several statements go through transaction().

    Returns:
        sqlite3.Connection: Database connection object
    """
    if 'db' not in g:
        db_path = current_app.config.get('DATABASE_PATH', 'instance/lending.db')
        g.db = sqlite3.connect(
            db_path,
            timeout=current_app.config.get('DATABASE_TIMEOUT', 10),
            isolation_level=None
        )
        g.db.row_factory = sqlite3.Row
        # Enable foreign key constraints
        g.db.execute('PRAGMA foreign_keys = ON')
        # Enable WAL mode so readers don't block the booking writer
        g.db.execute('PRAGMA journal_mode = WAL')
    return g.db


def close_db(e=None):
    """
    Close database connection.

    Args:
        e: Exception if any (from Flask teardown context)
    """
    db = g.pop('db', None)
    if db is not None:
        db.close()


@contextmanager
def transaction(immediate: bool = True):
    """
    Run a block of statements as one atomic write.

    BEGIN IMMEDIATE takes SQLite's write lock up front, so a
    check-then-act sequence (conflict check -> debit -> insert) cannot
    interleave with another writer. Commits on success, rolls back on any
    exception and re-raises.

    Nested use joins the outer transaction.

    Yields:
        sqlite3.Connection
    """
    db = get_db()

    if db.in_transaction:
        yield db
        return

    db.execute('BEGIN IMMEDIATE' if immediate else 'BEGIN')
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    else:
        db.commit()


@contextmanager
def savepoint(db, name: str):
    """
    Run a block inside a SAVEPOINT of the current transaction.

    On exception only the work since the savepoint is undone; the
    exception propagates to the caller.
    """
    db.execute(f'SAVEPOINT {name}')
    try:
        yield db
    except Exception:
        db.execute(f'ROLLBACK TO SAVEPOINT {name}')
        db.execute(f'RELEASE SAVEPOINT {name}')
        raise
    else:
        db.execute(f'RELEASE SAVEPOINT {name}')


def init_db():
    """
    Initialize database: drop existing tables, create new schema, insert seed data.
    WARNING: This will delete all existing data!
    """
    from database.schema import drop_tables, create_tables, create_indexes
    from database.seed import seed_database

    db = get_db()

    # Drop existing tables (in reverse order of dependencies)
    drop_tables(db)

    with transaction():
        # Create all tables
        create_tables(db)

        # Create indexes
        create_indexes(db)

        # Insert seed data
        seed_database(db)

    logger.info("Database initialized at %s", current_app.config.get('DATABASE_PATH'))
