"""Tests for affiliate resolution and booking / sale classification."""
from datetime import datetime
from types import SimpleNamespace

import pytest

from app.services.attribution import (
    affiliate_bookings,
    affiliate_sales,
    is_affiliate_booking,
    is_affiliate_sale,
    normalize_custom_link,
    resolve_affiliate,
)


class TestNormalizeCustomLink:

    @pytest.mark.parametrize('raw,expected', [
        ('jane', '/jane'),
        ('/jane', '/jane'),
        ('  /jane ', '/jane'),
        ('', None),
        ('/', None),
        (None, None),
    ])
    def test_forms(self, raw, expected):
        assert normalize_custom_link(raw) == expected


class TestResolveAffiliate:

    def test_exact_referral_code(self, db_session, make_affiliate):
        make_affiliate()
        assert resolve_affiliate(db_session, 'JANE10').id == 'aff-1'

    def test_custom_link_with_or_without_slash(self, db_session, make_affiliate):
        make_affiliate(custom_link='/jane')
        assert resolve_affiliate(db_session, 'jane').id == 'aff-1'
        assert resolve_affiliate(db_session, '/jane').id == 'aff-1'

    def test_custom_link_stored_without_slash(self, db_session, make_affiliate):
        make_affiliate(custom_link='jane')
        assert resolve_affiliate(db_session, '/jane').id == 'aff-1'

    def test_referral_code_wins_over_custom_link(self, db_session, make_affiliate):
        make_affiliate(id='aff-1', referral_code='jane', custom_link=None)
        make_affiliate(id='aff-2', referral_code='OTHER', custom_link='/jane')
        assert resolve_affiliate(db_session, 'jane').id == 'aff-1'

    @pytest.mark.parametrize('code', [None, '', '   ', 'UNKNOWN'])
    def test_unresolved_is_organic(self, db_session, make_affiliate, code):
        make_affiliate()
        assert resolve_affiliate(db_session, code) is None


class TestClassification:

    def _affiliate(self):
        return SimpleNamespace(referral_code='JANE10')

    def test_sale_requires_code_and_converted(self):
        affiliate = self._affiliate()
        assert is_affiliate_sale(SimpleNamespace(affiliate_code='JANE10', outcome='converted'), affiliate)
        assert not is_affiliate_sale(SimpleNamespace(affiliate_code='JANE10', outcome='no_answer'), affiliate)
        assert not is_affiliate_sale(SimpleNamespace(affiliate_code='OTHER', outcome='converted'), affiliate)

    def test_sale_accepts_custom_link_tag(self):
        affiliate = SimpleNamespace(referral_code='JANE10', custom_link='/jane')
        assert is_affiliate_sale(SimpleNamespace(affiliate_code='jane', outcome='converted'), affiliate)
        assert not is_affiliate_sale(SimpleNamespace(affiliate_code='john', outcome='converted'), affiliate)

    def test_sale_ignores_email(self):
        # Direct bookings that never took the quiz still count as sales
        appt = SimpleNamespace(affiliate_code='JANE10', outcome='converted', customer_email='nobody@x.com')
        assert is_affiliate_sale(appt, self._affiliate())

    def test_booking_requires_quiz_lead_email(self):
        appt = SimpleNamespace(affiliate_code='JANE10', customer_email='Jane@X.com')
        assert is_affiliate_booking(appt, self._affiliate(), emails={'jane@x.com'})
        assert not is_affiliate_booking(appt, self._affiliate(), emails={'other@x.com'})

    def test_booking_requires_affiliate_code(self):
        appt = SimpleNamespace(affiliate_code=None, customer_email='jane@x.com')
        assert not is_affiliate_booking(appt, self._affiliate(), emails={'jane@x.com'})

    def test_booking_needs_emails_or_session(self):
        appt = SimpleNamespace(affiliate_code='JANE10', customer_email='jane@x.com')
        with pytest.raises(ValueError):
            is_affiliate_booking(appt, self._affiliate())

    def test_missing_inputs_are_false(self):
        assert not is_affiliate_sale(None, self._affiliate())
        assert not is_affiliate_booking(None, self._affiliate(), emails=set())


class TestAffiliateQueries:

    def test_bookings_and_sales_are_asymmetric(self, db_session, make_affiliate,
                                               make_quiz_session, make_appointment):
        affiliate = make_affiliate()
        make_quiz_session('s-1', email='jane@x.com', affiliate_code='JANE10')
        make_appointment(id='a-quiz', customer_email='jane@x.com', affiliate_code='JANE10')
        # Tagged but booked directly, then converted
        make_appointment(id='a-direct', customer_email='direct@x.com', affiliate_code='JANE10',
                         outcome='converted', sale_value=500, converted_at=datetime(2024, 1, 3))

        bookings = affiliate_bookings(db_session, affiliate)
        sales = affiliate_sales(db_session, affiliate)
        assert [a.id for a in bookings] == ['a-quiz']
        assert [a.id for a in sales] == ['a-direct']

    def test_sales_window_uses_conversion_time(self, db_session, make_affiliate, make_appointment):
        affiliate = make_affiliate()
        make_appointment(id='a-1', affiliate_code='JANE10', outcome='converted', sale_value=100,
                         created_at=datetime(2024, 1, 1), converted_at=datetime(2024, 1, 10))
        assert affiliate_sales(db_session, affiliate, datetime(2024, 1, 9), datetime(2024, 1, 11))
        assert not affiliate_sales(db_session, affiliate, datetime(2024, 1, 1), datetime(2024, 1, 2))
