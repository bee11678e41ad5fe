"""Tests for payouts and the commission status rollup."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.errors import NotFoundError, ValidationError
from app.models.affiliate import Affiliate, AffiliateConversion, AffiliatePayout
from app.models.setting import Setting
from app.services.ledger import release_held_commissions, update_outcome
from app.services.payouts import get_commission_status, record_payout

T0 = datetime(2024, 1, 1, 12, 0)


@pytest.fixture
def available(db_session, make_affiliate):
    """Three available conversions of 40, 30 and 50, oldest first."""
    make_affiliate()
    for i, amount in enumerate(['40.00', '30.00', '50.00']):
        db_session.add(AffiliateConversion(
            id=f'c-{i}', affiliate_id='aff-1', referral_code='JANE10', conversion_type='sale',
            sale_value=Decimal(amount) * 10, commission_amount=Decimal(amount),
            commission_status='available', hold_until=T0, created_at=T0 + timedelta(hours=i),
        ))
    db_session.commit()


def _statuses(db_session):
    db_session.expire_all()
    return {c.id: c.commission_status for c in db_session.query(AffiliateConversion)}


class TestRecordPayout:

    def test_marks_oldest_first_within_amount(self, db_session, available):
        result = record_payout('aff-1', 75, notes='January', now=T0)

        assert result['conversions_paid'] == ['c-0', 'c-1']
        assert _statuses(db_session) == {'c-0': 'paid', 'c-1': 'paid', 'c-2': 'available'}
        payout = db_session.query(AffiliatePayout).one()
        assert payout.amount_due == Decimal('75.00')
        assert payout.status == 'completed'
        assert payout.notes == 'January'

    def test_stops_at_first_conversion_that_would_overshoot(self, db_session, available):
        result = record_payout('aff-1', 60, now=T0)
        assert result['conversions_paid'] == ['c-0']

    def test_total_commission_untouched(self, db_session, available):
        affiliate = db_session.get(Affiliate, 'aff-1')
        affiliate.total_commission = Decimal('120.00')
        db_session.commit()
        record_payout('aff-1', 120, now=T0)
        db_session.expire_all()
        assert db_session.get(Affiliate, 'aff-1').total_commission == Decimal('120.00')

    def test_insufficient_available(self, db_session, available):
        with pytest.raises(ValidationError, match='Insufficient available commission'):
            record_payout('aff-1', 500, now=T0)
        assert db_session.query(AffiliatePayout).count() == 0

    def test_below_minimum(self, available):
        with pytest.raises(ValidationError, match='Minimum payout'):
            record_payout('aff-1', 20, now=T0)

    def test_minimum_from_settings(self, db_session, available):
        db_session.add(Setting(key='minimum_payout', value='10'))
        db_session.commit()
        assert record_payout('aff-1', 40, now=T0)['conversions_paid'] == ['c-0']

    @pytest.mark.parametrize('amount', [None, 0, '-10', 'abc'])
    def test_invalid_amount(self, available, amount):
        with pytest.raises(ValidationError):
            record_payout('aff-1', amount, now=T0)

    def test_unknown_affiliate(self):
        with pytest.raises(NotFoundError):
            record_payout('ghost', 100)

    def test_held_commission_not_payable(self, db_session, make_affiliate):
        make_affiliate()
        db_session.add(AffiliateConversion(
            id='c-held', affiliate_id='aff-1', referral_code='JANE10', conversion_type='sale',
            commission_amount=Decimal('100.00'), commission_status='held', hold_until=T0,
        ))
        db_session.commit()
        with pytest.raises(ValidationError):
            record_payout('aff-1', 100, now=T0)


class TestCommissionAmountsConserved:

    def test_amounts_never_change_across_lifecycle(self, db_session, make_affiliate, make_appointment):
        make_affiliate()
        make_appointment(id='a-1', affiliate_code='JANE10')
        make_appointment(id='a-2', affiliate_code='JANE10', customer_email='b@x.com')
        update_outcome('a-1', 'converted', sale_value=600, now=T0)
        update_outcome('a-2', 'converted', sale_value=450, now=T0 + timedelta(hours=2))

        def _amounts():
            db_session.expire_all()
            return sorted(c.commission_amount for c in db_session.query(AffiliateConversion))

        created = _amounts()
        assert created == [Decimal('45.00'), Decimal('60.00')]

        release_held_commissions(now=T0 + timedelta(days=31))
        assert _amounts() == created
        record_payout('aff-1', 60, now=T0 + timedelta(days=32))
        assert _amounts() == created

        db_session.expire_all()
        assert db_session.get(Affiliate, 'aff-1').total_commission == sum(created)


class TestCommissionStatus:

    def test_rollup(self, db_session, make_affiliate):
        make_affiliate()
        rows = [
            ('c-1', 'held', '10.00', T0 - timedelta(days=1)),
            ('c-2', 'held', '15.00', T0 + timedelta(days=5)),
            ('c-3', 'available', '20.00', T0),
            ('c-4', 'paid', '5.00', T0),
        ]
        for cid, status, amount, hold in rows:
            db_session.add(AffiliateConversion(
                id=cid, affiliate_id='aff-1', referral_code='JANE10', conversion_type='sale',
                commission_amount=Decimal(amount), commission_status=status, hold_until=hold,
            ))
        db_session.commit()

        status = get_commission_status(now=T0)

        assert status['ready_for_release'] == 1
        assert status['held'] == {'count': 2, 'amount': 25.0}
        assert status['available'] == {'count': 1, 'amount': 20.0}
        assert status['paid'] == {'count': 1, 'amount': 5.0}

    def test_empty(self):
        status = get_commission_status(now=T0)
        assert status['held'] == {'count': 0, 'amount': 0.0}
        assert status['ready_for_release'] == 0
