"""Tests for the affiliate routes."""
from datetime import datetime
from decimal import Decimal

from app.models.affiliate import AffiliateConversion


class TestResolve:

    def test_referral_code(self, client, make_affiliate):
        make_affiliate()
        resp = client.get('/api/affiliates/resolve/JANE10')
        assert resp.status_code == 200
        assert resp.get_json()['id'] == 'aff-1'

    def test_custom_link(self, client, make_affiliate):
        make_affiliate(custom_link='/jane')
        resp = client.get('/api/affiliates/resolve/jane')
        assert resp.get_json()['referral_code'] == 'JANE10'

    def test_unknown(self, client):
        assert client.get('/api/affiliates/resolve/NOPE').status_code == 404


class TestTrackClick:

    def test_tracked(self, client, make_affiliate):
        make_affiliate()
        resp = client.post('/api/track/click', json={'affiliateCode': 'JANE10'})
        assert resp.get_json()['tracked'] is True

    def test_organic(self, client):
        resp = client.post('/api/track/click', json={'code': 'NOPE'})
        assert resp.status_code == 200
        assert resp.get_json() == {'tracked': False}


class TestStats:

    def test_range(self, client, make_affiliate):
        make_affiliate()
        resp = client.get('/api/affiliates/aff-1/stats?start=2024-01-01T00:00:00&end=2024-01-01T06:00:00')
        data = resp.get_json()
        assert resp.status_code == 200
        assert data['granularity'] == 'hour'
        assert len(data['series']) == 7

    def test_unknown(self, client):
        assert client.get('/api/affiliates/ghost/stats').status_code == 404


class TestPayouts:

    def test_recorded(self, client, db_session, make_affiliate):
        make_affiliate()
        db_session.add(AffiliateConversion(
            id='c-1', affiliate_id='aff-1', referral_code='JANE10', conversion_type='sale',
            commission_amount=Decimal('80.00'), commission_status='available',
            hold_until=datetime(2024, 1, 1),
        ))
        db_session.commit()

        resp = client.post('/api/affiliates/aff-1/payouts', json={'amount': 80, 'notes': 'Jan'})

        assert resp.status_code == 201
        assert resp.get_json()['conversions_paid'] == ['c-1']

    def test_insufficient(self, client, make_affiliate):
        make_affiliate()
        resp = client.post('/api/affiliates/aff-1/payouts', json={'amount': 80})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Insufficient available commission'}


class TestLeadsCount:

    def test_deduplicated(self, client, make_quiz_session):
        make_quiz_session('s-1', email='jane@x.com', affiliate_code='JANE10')
        make_quiz_session('s-2', email='Jane@X.com', affiliate_code='JANE10')
        make_quiz_session('s-3', email='bob@x.com')

        assert client.get('/api/leads/count').get_json()['count'] == 2
        resp = client.get('/api/leads/count?affiliate_code=JANE10')
        assert resp.get_json() == {'count': 1, 'affiliate_code': 'JANE10'}

    def test_custom_link_code_resolves(self, client, make_affiliate, make_quiz_session):
        make_affiliate(custom_link='/jane')
        make_quiz_session('s-1', email='jane@x.com', affiliate_code='JANE10')

        resp = client.get('/api/leads/count?affiliate_code=/jane')
        assert resp.get_json() == {'count': 1, 'affiliate_code': 'JANE10'}
