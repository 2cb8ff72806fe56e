"""
Tests for the JSON API routes.
"""

import pytest
from datetime import date, timedelta

from conftest import login, MEMBER_PASSWORD
from models.product import create_section, create_product
from models.user import create_user
from utils.datetime_helpers import get_today

API = '/lending/api'


@pytest.fixture
def catalog(api_app):
    """One product at 5 credits/day and one member with 100 credits."""
    with api_app.app_context():
        section_id = create_section('API section')
        product_id = create_product('Camera', section_id, price_credits=5)
        member_id = create_user('alice', 'alice@example.com', MEMBER_PASSWORD, credit_balance=100)
        other_id = create_user('bob', 'bob@example.com', MEMBER_PASSWORD, credit_balance=100)
        today = get_today()
        start = today + timedelta(days=10)
    return {
        'today': today.isoformat(),
        'product_id': product_id,
        'member_id': member_id,
        'other_id': other_id,
        'start': start.isoformat(),
        'end': (start + timedelta(days=2)).isoformat(),
    }


def _book(client, catalog, **overrides):
    payload = {
        'product_id': catalog['product_id'],
        'start_date': catalog['start'],
        'end_date': catalog['end'],
        **overrides,
    }
    return client.post(f'{API}/reservations', json=payload)


class TestAuth:
    """Tests for JSON authentication."""

    def test_health_is_public(self, client):
        """Health check needs no login."""
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'

    def test_requires_login(self, client):
        """API routes answer 401 JSON when anonymous."""
        response = client.get(f'{API}/products')
        assert response.status_code == 401
        assert response.get_json()['code'] == 'UNAUTHORIZED'

    def test_bad_credentials(self, client):
        """Wrong password is 401."""
        response = client.post('/login', json={'username': 'admin', 'password': 'nope'})
        assert response.status_code == 401

    def test_missing_fields(self, client):
        """Form validation errors are reported per field."""
        response = client.post('/login', json={'username': 'admin'})
        assert response.status_code == 400
        assert 'password' in response.get_json()['fields']

    def test_me(self, authenticated_client):
        """Current user."""
        data = authenticated_client.get('/me').get_json()['data']
        assert data['username'] == 'admin'
        assert data['role'] == 'admin'


class TestCatalogApi:
    """Tests for sections and products."""

    def test_admin_creates_product(self, authenticated_client):
        """Admin can create sections and products."""
        response = authenticated_client.post(f'{API}/sections', json={
            'name': 'Weekend', 'allowed_days_out': [5], 'allowed_days_in': '1'
        })
        assert response.status_code == 201
        section = response.get_json()['data']

        response = authenticated_client.post(f'{API}/products', json={
            'name': 'Tent', 'section_id': section['id'], 'price_credits': 3,
            'credit_period': 'WEEK', 'min_duration': 3
        })
        assert response.status_code == 201
        product = response.get_json()['data']
        assert product['credit_period'] == 'WEEK'

        response = authenticated_client.patch(f"{API}/products/{product['id']}",
                                              json={'max_duration': 2})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_ERROR'

    def test_member_cannot_create(self, client, catalog):
        """Members are forbidden from admin routes."""
        login(client, 'alice', MEMBER_PASSWORD)
        response = client.post(f'{API}/sections', json={'name': 'Nope'})
        assert response.status_code == 403

    def test_quote_and_availability(self, client, catalog):
        """Quote and availability for an interval."""
        login(client, 'alice', MEMBER_PASSWORD)
        pid = catalog['product_id']

        quote = client.get(f"{API}/products/{pid}/quote?start={catalog['start']}&end={catalog['end']}")
        assert quote.get_json()['data']['total'] == 15

        availability = client.get(
            f"{API}/products/{pid}/availability?start={catalog['start']}&end={catalog['end']}"
        ).get_json()['data']
        assert availability['available'] is True

    def test_calendar(self, client, catalog):
        """Calendar of the booking month."""
        login(client, 'alice', MEMBER_PASSWORD)
        month = catalog['start'][:7]
        response = client.get(f"{API}/products/{catalog['product_id']}/calendar?month={month}")
        assert response.status_code == 200
        assert response.get_json()['data']['month'] == month

        response = client.get(f"{API}/products/{catalog['product_id']}/calendar?month=2024-13")
        assert response.status_code == 400

    def test_unknown_product(self, client, catalog):
        """Unknown product is 404 JSON."""
        login(client, 'alice', MEMBER_PASSWORD)
        response = client.get(f'{API}/products/9999')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'NOT_FOUND'


class TestReservationApi:
    """Tests for booking and lifecycle routes."""

    def test_member_books_and_cancels(self, client, catalog):
        """Booking debits; early cancellation refunds."""
        login(client, 'alice', MEMBER_PASSWORD)

        response = _book(client, catalog)
        assert response.status_code == 201
        reservation = response.get_json()['data']
        assert reservation['credits_charged'] == 15
        assert reservation['user_id'] == catalog['member_id']

        me = client.get(f'{API}/credits/me').get_json()['data']
        assert me['credit_balance'] == 85

        detail = client.get(f"{API}/reservations/{reservation['id']}").get_json()['data']
        assert [h['to_status'] for h in detail['history']] == ['CONFIRMED']

        response = client.post(f"{API}/reservations/{reservation['id']}/cancel",
                               json={'reason': 'Plans changed', 'force_refund': False})
        assert response.status_code == 200
        # force_refund is an admin-only override
        assert response.get_json()['data']['status'] == 'REFUNDED'

    def test_force_refund_string_rejected(self, authenticated_client, catalog):
        """Admin force_refund must be a JSON boolean."""
        client = authenticated_client
        rid = _book(client, catalog, user_id=catalog['member_id']).get_json()['data']['id']

        response = client.post(f'{API}/reservations/{rid}/cancel', json={'force_refund': 'false'})
        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_ERROR'
        assert client.get(f'{API}/reservations/{rid}').get_json()['data']['status'] == 'CONFIRMED'

    def test_conflict_is_409(self, client, catalog):
        """Double booking answers 409 with the conflicts."""
        login(client, 'alice', MEMBER_PASSWORD)
        assert _book(client, catalog).status_code == 201

        response = _book(client, catalog)
        assert response.status_code == 409
        body = response.get_json()
        assert body['code'] == 'CONFLICT'
        assert body['conflicts'][0]['kind'] == 'reservation'

    def test_insufficient_credits(self, client, catalog, api_app):
        """Insufficient balance is reported with amounts."""
        with api_app.app_context():
            create_user('poor', 'poor@example.com', MEMBER_PASSWORD, credit_balance=1)
        login(client, 'poor', MEMBER_PASSWORD)

        body = _book(client, catalog).get_json()
        assert body['code'] == 'INSUFFICIENT_CREDITS'
        assert body['required'] == 15
        assert body['available'] == 1

    def test_missing_fields(self, client, catalog):
        """Required fields."""
        login(client, 'alice', MEMBER_PASSWORD)
        response = client.post(f'{API}/reservations', json={'product_id': catalog['product_id']})
        assert response.status_code == 400

    def test_member_sees_only_own(self, client, catalog, api_app):
        """Listing and detail are scoped to the owner."""
        with api_app.app_context():
            from models.reservation import create_reservation
            others = create_reservation(catalog['other_id'], catalog['product_id'],
                                        catalog['start'], catalog['end'], 'bob')

        login(client, 'alice', MEMBER_PASSWORD)
        listing = client.get(f'{API}/reservations').get_json()
        assert listing['total'] == 0

        response = client.get(f"{API}/reservations/{others['id']}")
        assert response.status_code == 403

        response = client.post(f"{API}/reservations/{others['id']}/cancel", json={})
        assert response.status_code == 403

    def test_admin_lifecycle(self, authenticated_client, catalog):
        """Admin books for a member, checks out, returns and refunds."""
        client = authenticated_client
        response = _book(client, catalog, user_id=catalog['member_id'], admin_notes='VIP')
        assert response.status_code == 201
        reservation = response.get_json()['data']
        assert reservation['user_id'] == catalog['member_id']
        assert reservation['admin_notes'] == 'VIP'

        rid = reservation['id']
        assert client.post(f'{API}/reservations/{rid}/refund', json={}).status_code == 409

        assert client.post(f'{API}/reservations/{rid}/checkout', json={}).get_json()['data']['status'] == 'CHECKED_OUT'
        returned = client.post(f'{API}/reservations/{rid}/return', json={'condition': 'OK'})
        assert returned.get_json()['data']['status'] == 'RETURNED'

        movements = client.get(f"{API}/products/{catalog['product_id']}/movements").get_json()['data']
        assert [m['type'] for m in movements] == ['RETURN', 'CHECKOUT']
        assert movements[0]['reservation_id'] == rid

        refunded = client.post(f'{API}/reservations/{rid}/refund', json={'amount': 5})
        assert refunded.status_code == 200
        assert refunded.get_json()['data']['refund_amount'] == 5

        again = client.post(f'{API}/reservations/{rid}/refund', json={})
        assert again.get_json()['code'] == 'ALREADY_REFUNDED'

        listing = client.get(f"{API}/reservations?user_id={catalog['member_id']}").get_json()
        assert listing['total'] == 1

    def test_member_extends(self, client, catalog, api_app):
        """The owner checks and extends a checked-out reservation."""
        with api_app.app_context():
            from models.reservation import create_reservation, checkout_reservation
            rid = create_reservation(catalog['member_id'], catalog['product_id'],
                                     catalog['start'], catalog['end'], 'alice')['id']
            checkout_reservation(rid, 'staff')
            new_end = (date.fromisoformat(catalog['end']) + timedelta(days=2)).isoformat()

        login(client, 'alice', MEMBER_PASSWORD)
        info = client.get(f'{API}/reservations/{rid}/extension?new_end_date={new_end}').get_json()['data']
        assert info['possible'] is True
        assert info['cost'] == 10

        assert client.post(f'{API}/reservations/{rid}/extend', json={}).status_code == 400

        response = client.post(f'{API}/reservations/{rid}/extend', json={'new_end_date': new_end})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['end_date'] == new_end
        assert data['extension_count'] == 1
        assert client.get(f'{API}/credits/me').get_json()['data']['credit_balance'] == 75

    def test_scan(self, authenticated_client, catalog):
        """QR scan drives checkout and return."""
        client = authenticated_client
        reservation = _book(client, catalog, user_id=catalog['member_id']).get_json()['data']

        response = client.post(f'{API}/reservations/scan',
                               json={'code': reservation['qr_code'], 'action': 'checkout'})
        assert response.get_json()['data']['status'] == 'CHECKED_OUT'

        response = client.post(f'{API}/reservations/scan',
                               json={'code': reservation['qr_code'], 'action': 'return',
                                     'condition': 'MINOR_DAMAGE'})
        assert response.get_json()['data']['return_condition'] == 'MINOR_DAMAGE'

        response = client.post(f'{API}/reservations/scan',
                               json={'code': reservation['qr_code'][:-1] + 'x', 'action': 'return'})
        assert response.status_code == 400

    def test_return_conditions(self, authenticated_client, catalog):
        """The return route accepts the documented conditions and rejects others."""
        client = authenticated_client
        rid = _book(client, catalog, user_id=catalog['member_id']).get_json()['data']['id']
        client.post(f'{API}/reservations/{rid}/checkout', json={})

        response = client.post(f'{API}/reservations/{rid}/return', json={'condition': 'DAMAGED'})
        assert response.status_code == 400

        response = client.post(f'{API}/reservations/{rid}/return', json={'condition': 'MISSING_PARTS'})
        assert response.status_code == 200
        assert response.get_json()['data']['return_condition'] == 'MISSING_PARTS'

    def test_reschedule(self, authenticated_client, catalog):
        """Admin moves the end date."""
        client = authenticated_client
        rid = _book(client, catalog, user_id=catalog['member_id']).get_json()['data']['id']

        response = client.patch(f'{API}/reservations/{rid}', json={'end_date': catalog['start']})
        assert response.status_code == 200
        assert response.get_json()['data']['end_date'] == catalog['start']


class TestMaintenanceApi:
    """Tests for maintenance routes."""

    def test_preview_create_end(self, authenticated_client, catalog):
        """Preview reports the impact; creation applies it; end releases."""
        client = authenticated_client
        pid = catalog['product_id']
        _book(client, catalog, user_id=catalog['member_id'])

        preview = client.post(f'{API}/products/{pid}/maintenance/preview',
                              json={'start_date': catalog['start'], 'end_date': None}).get_json()['data']
        assert preview['total_reservations_affected'] == 1
        assert preview['total_credits_to_refund'] == 15

        response = client.post(f'{API}/products/{pid}/maintenance',
                               json={'start_date': catalog['start'], 'reason': 'Lens'})
        assert response.status_code == 201
        result = response.get_json()['data']
        assert result['cancelled_reservations_count'] == 1
        mid = result['maintenance']['id']

        detail = client.get(f'{API}/products/{pid}').get_json()['data']
        assert detail['active_maintenance'] is None
        assert [m['id'] for m in detail['scheduled_maintenances']] == [mid]

        response = client.post(f'{API}/products/{pid}/maintenance',
                               json={'start_date': catalog['end']})
        assert response.status_code == 409
        assert response.get_json()['code'] == 'MAINTENANCE_OVERLAP'

        response = client.patch(f'{API}/maintenance/{mid}', json={'reason': 'Lens cracked'})
        assert response.get_json()['data']['reason'] == 'Lens cracked'

        listing = client.get(f'{API}/products/{pid}/maintenance').get_json()['data']
        assert [m['id'] for m in listing] == [mid]

        # Scheduled window: delete it instead of ending
        assert client.delete(f'{API}/maintenance/{mid}').status_code == 200
        assert client.get(f'{API}/maintenance/{mid}').status_code == 404

    def test_end_active(self, authenticated_client, catalog):
        """Ending an active window."""
        client = authenticated_client
        pid = catalog['product_id']
        today = catalog['today']
        mid = client.post(f'{API}/products/{pid}/maintenance',
                          json={'start_date': today}).get_json()['data']['maintenance']['id']

        detail = client.get(f'{API}/products/{pid}').get_json()['data']
        assert detail['active_maintenance']['id'] == mid
        assert detail['status'] == 'MAINTENANCE'

        assert client.delete(f'{API}/maintenance/{mid}').status_code == 400
        response = client.post(f'{API}/maintenance/{mid}/end')
        assert response.get_json()['data']['status'] == 'ENDED'


class TestCreditsApi:
    """Tests for credit routes."""

    def test_admin_adjusts(self, authenticated_client, catalog):
        """Admin adjustment shows in the user's ledger."""
        client = authenticated_client
        uid = catalog['member_id']

        response = client.post(f'{API}/users/{uid}/credits', json={'amount': -30, 'reason': 'Fee'})
        assert response.get_json()['data']['credit_balance'] == 70

        ledger = client.get(f'{API}/users/{uid}/credits').get_json()['data']
        assert ledger['credit_balance'] == 70
        assert ledger['transactions'][0]['amount'] == -30

        response = client.post(f'{API}/users/{uid}/credits', json={'amount': 5})
        assert response.status_code == 400

    def test_member_cannot_adjust(self, client, catalog):
        """Members are forbidden."""
        login(client, 'alice', MEMBER_PASSWORD)
        response = client.post(f"{API}/users/{catalog['member_id']}/credits",
                               json={'amount': 50, 'reason': 'Free money'})
        assert response.status_code == 403


class TestAuditApi:
    """Tests for the audit log route."""

    def test_adjustment_is_audited(self, authenticated_client, catalog):
        """Credit adjustments appear in the audit log with their changes."""
        client = authenticated_client
        uid = catalog['member_id']
        client.post(f'{API}/users/{uid}/credits', json={'amount': 10, 'reason': 'Bonus'})

        response = client.get(f'{API}/audit-log?entity_type=credits&entity_id={uid}')
        assert response.status_code == 200
        entries = response.get_json()['data']
        assert entries[0]['action'] == 'ADJUST'
        assert entries[0]['changes']['after']['credit_balance'] == 110

    def test_member_forbidden(self, client, catalog):
        """Members cannot read the audit log."""
        login(client, 'alice', MEMBER_PASSWORD)
        assert client.get(f'{API}/audit-log').status_code == 403


class TestUsersApi:
    """Tests for enabling and disabling accounts."""

    def test_disable_blocks_login(self, authenticated_client, catalog, api_app):
        """A disabled member can no longer sign in; enabling restores access."""
        client = authenticated_client
        uid = catalog['member_id']

        response = client.patch(f'{API}/users/{uid}', json={'active': False})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['active'] == 0
        assert 'password_hash' not in data

        entries = client.get(f'{API}/audit-log?entity_type=user&entity_id={uid}').get_json()['data']
        assert entries[0]['changes']['after'] == {'active': False}

        member = api_app.test_client()
        response = member.post('/login', json={'username': 'alice', 'password': MEMBER_PASSWORD})
        assert response.status_code == 403

        client.patch(f'{API}/users/{uid}', json={'active': True})
        login(member, 'alice', MEMBER_PASSWORD)

    def test_active_must_be_boolean(self, authenticated_client, catalog):
        """The string "false" is not a boolean."""
        response = authenticated_client.patch(f"{API}/users/{catalog['member_id']}",
                                              json={'active': 'false'})
        assert response.status_code == 400

    def test_cannot_disable_self(self, authenticated_client):
        """Admins cannot lock themselves out."""
        me = authenticated_client.get('/me')
        response = authenticated_client.patch(f"{API}/users/{me.get_json()['data']['id']}",
                                              json={'active': False})
        assert response.status_code == 400

    def test_unknown_user(self, authenticated_client):
        """Unknown user is 404."""
        response = authenticated_client.patch(f'{API}/users/9999', json={'active': False})
        assert response.status_code == 404

    def test_member_forbidden(self, client, catalog):
        """Members cannot change accounts."""
        login(client, 'alice', MEMBER_PASSWORD)
        response = client.patch(f"{API}/users/{catalog['other_id']}", json={'active': False})
        assert response.status_code == 403
