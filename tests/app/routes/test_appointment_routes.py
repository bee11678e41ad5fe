"""Tests for the appointment routes."""
from decimal import Decimal
from unittest.mock import patch

from app.models.affiliate import AffiliateConversion


BOOKING = {
    'customerName': 'Jane Doe',
    'customerEmail': 'jane@x.com',
    'scheduledAt': '2024-01-06T15:00:00Z',
}


class TestCreate:

    def test_created(self, client, make_closer):
        make_closer()
        resp = client.post('/api/appointments', json=BOOKING)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data['closer_id'] == 'closer-1'
        assert data['unassigned'] is False

    def test_unassigned_still_created(self, client):
        resp = client.post('/api/appointments', json=BOOKING)
        assert resp.status_code == 201
        assert resp.get_json()['unassigned'] is True

    def test_unknown_closer(self, client):
        resp = client.post('/api/appointments', json={**BOOKING, 'closerId': 'ghost'})
        assert resp.status_code == 404

    def test_missing_body(self, client):
        resp = client.post('/api/appointments', data='not json', content_type='text/plain')
        assert resp.status_code == 400


class TestOutcome:

    def test_converted_creates_held_commission(self, client, db_session, make_affiliate, make_closer,
                                               make_appointment):
        make_affiliate()
        make_closer()
        make_appointment(affiliate_code='JANE10', closer_id='closer-1')

        resp = client.put('/api/appointments/appt-1/outcome',
                          json={'outcome': 'converted', 'saleValue': 600, 'notes': 'Signed'})

        assert resp.status_code == 200
        data = resp.get_json()
        assert data['appointment']['outcome'] == 'converted'
        assert data['appointment']['notes'] == 'Signed'
        assert data['conversion']['commission_amount'] == 60.0
        assert data['conversion']['commission_status'] == 'held'
        assert data['duplicate_skipped'] is False
        assert db_session.query(AffiliateConversion).count() == 1

    def test_invalid_outcome(self, client, make_appointment):
        make_appointment()
        resp = client.put('/api/appointments/appt-1/outcome', json={'outcome': 'maybe'})
        assert resp.status_code == 400

    def test_unknown_appointment(self, client):
        resp = client.put('/api/appointments/ghost/outcome', json={'outcome': 'no_answer'})
        assert resp.status_code == 404

    def test_closer_scope_mismatch(self, client, make_closer, make_appointment):
        make_closer()
        make_appointment(closer_id='closer-1')
        resp = client.put('/api/appointments/appt-1/outcome',
                          json={'outcome': 'no_answer', 'closerId': 'someone-else'})
        assert resp.status_code == 404


class TestReconcile:

    def test_enqueued(self, client):
        with patch('app.routes.appointments.enqueue_reconciliation', return_value='job-1'):
            resp = client.post('/api/appointments/reconcile')
        assert resp.status_code == 202
        assert resp.get_json() == {'job_id': 'job-1', 'status': 'queued'}

    def test_sync(self, client, make_closer, make_appointment):
        make_appointment(status='scheduled')
        make_closer()
        resp = client.post('/api/appointments/reconcile?sync=1')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['assigned_count'] == 1
        assert data['counters'] == {'corrected': []}
