"""
Attribution resolver — maps referral codes and appointments to affiliates.

Booking classification is stricter than sale classification:
  - booking: the appointment carries the affiliate's code AND its email belongs
    to one of the affiliate's own qualifying quiz leads (guards against
    manually tagged / direct bookings)
  - sale: the appointment carries the affiliate's referral code and is
    converted, whatever its email

So booking counts are not guaranteed to be <= sale counts; the two funnels
are reconciled separately.
"""
import logging
from typing import Optional

from sqlalchemy import or_

from app.config import OUTCOME_CONVERTED
from app.models.affiliate import Affiliate
from app.models.appointment import Appointment
from app.services.leads import lead_emails
from app.services.validation import normalize_email

logger = logging.getLogger('services.attribution')


def normalize_custom_link(code: Optional[str]) -> Optional[str]:
    """Return the '/code' storage form of a custom link, or None for blanks."""
    if code is None:
        return None
    code = str(code).strip()
    if not code or code == '/':
        return None
    return '/' + code.lstrip('/')


def resolve_affiliate(session, code: Optional[str]) -> Optional[Affiliate]:
    """
    Resolve a raw affiliate code.

    Exact referral_code match first, then custom_link with or without the
    leading slash. Returns None for blank / unknown codes, which callers treat
    as organic traffic.
    """
    if code is None:
        return None
    code = str(code).strip()
    if not code:
        return None

    affiliate = session.query(Affiliate).filter(Affiliate.referral_code == code).first()
    if affiliate is not None:
        return affiliate

    link = normalize_custom_link(code)
    if link is None:
        return None
    affiliate = session.query(Affiliate).filter(
        or_(Affiliate.custom_link == link, Affiliate.custom_link == link.lstrip('/')),
    ).first()
    if affiliate is None:
        logger.info("Affiliate code %r did not resolve, treating as organic", code)
    return affiliate


def _code_matches(code, affiliate) -> bool:
    if code is None:
        return False
    if code == affiliate.referral_code:
        return True
    link = normalize_custom_link(code)
    return link is not None and link == normalize_custom_link(getattr(affiliate, 'custom_link', None))


def is_affiliate_sale(appointment, affiliate) -> bool:
    """
    An appointment is a sale for the affiliate when tagged with its code and
    converted. Rows tagged with the affiliate's custom link also count.
    """
    if appointment is None or affiliate is None:
        return False
    return (
        _code_matches(appointment.affiliate_code, affiliate)
        and appointment.outcome == OUTCOME_CONVERTED
    )


def is_affiliate_booking(appointment, affiliate, emails=None, session=None) -> bool:
    """
    An appointment is a booked call for the affiliate only when it is tagged
    with the affiliate's code and its email is one of the affiliate's own
    qualifying quiz leads.

    Pass a precomputed `emails` set when classifying many appointments;
    otherwise `session` is used to load it.
    """
    if appointment is None or affiliate is None:
        return False
    if appointment.affiliate_code != affiliate.referral_code:
        return False
    if emails is None:
        if session is None:
            raise ValueError("is_affiliate_booking needs either emails or session")
        emails = lead_emails(session, affiliate.referral_code)
    return normalize_email(appointment.customer_email) in emails


def affiliate_bookings(session, affiliate, start=None, end=None):
    """Appointments that count as booked calls for the affiliate (by created_at)."""
    emails = lead_emails(session, affiliate.referral_code)
    if not emails:
        return []
    query = session.query(Appointment).filter(
        Appointment.affiliate_code == affiliate.referral_code,
        Appointment.customer_email.in_(emails),
    )
    if start is not None:
        query = query.filter(Appointment.created_at >= start)
    if end is not None:
        query = query.filter(Appointment.created_at <= end)
    return query.order_by(Appointment.created_at).all()


def affiliate_sales(session, affiliate, start=None, end=None):
    """Converted appointments tagged with the affiliate's code (by converted_at)."""
    query = session.query(Appointment).filter(
        Appointment.affiliate_code == affiliate.referral_code,
        Appointment.outcome == OUTCOME_CONVERTED,
    )
    appointments = query.order_by(Appointment.created_at).all()
    if start is None and end is None:
        return appointments
    return [a for a in appointments if _in_window(sale_time(a), start, end)]


def sale_time(appointment):
    return appointment.converted_at or appointment.updated_at or appointment.created_at


def _in_window(ts, start, end):
    if ts is None:
        return False
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True
