"""
Pytest configuration and fixtures.
Ensures tests use an isolated test database, not the production database.
"""

import os
import pytest
import tempfile
from datetime import timedelta

# Set test database path BEFORE importing app
# This ensures all tests use an isolated database
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), 'lending_test.db')
os.environ['DATABASE_PATH'] = TEST_DB_PATH

MEMBER_PASSWORD = 'member123'


@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Set up test environment before any tests run."""
    # Ensure test database path is set
    os.environ['DATABASE_PATH'] = TEST_DB_PATH
    os.environ['FLASK_ENV'] = 'test'

    yield

    # Cleanup: remove test database after all tests
    for suffix in ('', '-wal', '-shm'):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            try:
                os.remove(path)
            except PermissionError:
                pass  # Windows may have file locked


def _create_test_app():
    from app import create_app
    from database import init_db

    # Ensure test database path
    os.environ['DATABASE_PATH'] = TEST_DB_PATH

    app = create_app('test')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    app.config['DATABASE_PATH'] = TEST_DB_PATH

    with app.app_context():
        init_db()
    return app


@pytest.fixture
def app():
    """Create test application with isolated database and a pushed app context."""
    app = _create_test_app()
    with app.app_context():
        yield app


@pytest.fixture
def api_app():
    """
    Test application without a pushed app context.

    Every request gets its own app context (fresh g, fresh connection), like
    in production. Set up data inside `with api_app.app_context():`.
    """
    return _create_test_app()


@pytest.fixture
def client(api_app):
    """Create test client."""
    return api_app.test_client()


def login(client, username, password):
    """Log a test client in through the JSON login endpoint."""
    response = client.post('/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def authenticated_client(client):
    """Test client logged in as the seeded admin."""
    login(client, 'admin', 'admin123')
    return client


# =============================================================================
# DATA FACTORIES
# =============================================================================

@pytest.fixture
def make_member():
    """Factory: member user with an opening credit balance. Returns the user ID."""
    from models.user import create_user

    counter = {'n': 0}

    def _make(credit_balance=100, username=None):
        counter['n'] += 1
        username = username or f"member{counter['n']}"
        return create_user(username, f'{username}@example.com', MEMBER_PASSWORD,
                           full_name=f'Member {counter["n"]}', credit_balance=credit_balance)
    return _make


@pytest.fixture
def make_product():
    """Factory: product in a fresh section. Returns the product ID."""
    from models.product import create_section, create_product

    counter = {'n': 0}

    def _make(price_credits=5, credit_period='DAY', min_duration=1, max_duration=0,
              allowed_days_out=None, allowed_days_in=None):
        counter['n'] += 1
        section_id = create_section(f"Test section {counter['n']}",
                                    allowed_days_out=allowed_days_out,
                                    allowed_days_in=allowed_days_in)
        return create_product(f"Test product {counter['n']}", section_id,
                              min_duration=min_duration, max_duration=max_duration,
                              price_credits=price_credits, credit_period=credit_period)
    return _make


def next_weekday(start, iso_weekday):
    """First date on or after start falling on an ISO weekday (Monday=1)."""
    return start + timedelta(days=(iso_weekday - start.isoweekday()) % 7)
