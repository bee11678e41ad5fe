"""
Counter reconciliation — recompute cached aggregates from the event tables.

Closer.total_* and Affiliate.total_* are caches. The compute_* functions scan
the underlying rows (appointments, clicks, quiz leads, conversions) and the
resync_* functions write the result back, reporting any drift they corrected.
"""
import logging
from decimal import Decimal

from sqlalchemy import func

from app.config import CONVERSION_SALE, OUTCOME_CONVERTED
from app.database import get_session
from app.models.affiliate import Affiliate, AffiliateClick, AffiliateConversion
from app.models.appointment import Appointment
from app.models.closer import Closer
from app.services.attribution import affiliate_bookings
from app.services.leads import count_leads
from app.services.notifications import notify_counter_drift
from app.services.validation import quantize_money

logger = logging.getLogger('services.counters')

ZERO = Decimal('0.00')


def is_conversion(outcome, sale_value) -> bool:
    """A closer conversion: converted with a positive sale value."""
    return outcome == OUTCOME_CONVERTED and sale_value is not None and Decimal(sale_value) > 0


# ── Closers ──────────────────────────────────────────────────────────────────

def compute_closer_stats(session, closer_id) -> dict:
    """Scan every appointment assigned to the closer."""
    rows = session.query(Appointment.outcome, Appointment.sale_value).filter(
        Appointment.closer_id == closer_id,
    ).all()

    calls = len(rows)
    conversions = 0
    revenue = ZERO
    for outcome, sale_value in rows:
        if is_conversion(outcome, sale_value):
            conversions += 1
            revenue += Decimal(sale_value)

    return {
        'total_calls': calls,
        'total_conversions': conversions,
        'total_revenue': quantize_money(revenue),
        'conversion_rate': conversions / calls if calls else 0.0,
    }


def resync_closer(session, closer) -> dict:
    """Overwrite the closer's counters with the scan. Returns the drift found. Does not commit."""
    stats = compute_closer_stats(session, closer.id)
    drift = {}
    for field in ('total_calls', 'total_conversions', 'total_revenue'):
        cached = getattr(closer, field)
        if cached is None or _differs(cached, stats[field]):
            drift[field] = {'cached': cached, 'recomputed': stats[field]}
        setattr(closer, field, stats[field])
    closer.conversion_rate = stats['conversion_rate']

    if drift:
        logger.warning("Closer counter drift corrected: %s", _describe(drift),
                       extra={'closer_id': closer.id})
    return drift


# ── Affiliates ───────────────────────────────────────────────────────────────

def compute_affiliate_totals(session, affiliate) -> dict:
    """Scan clicks, deduplicated leads, bookings and conversions for one affiliate."""
    clicks = session.query(func.count(AffiliateClick.id)).filter(
        AffiliateClick.affiliate_id == affiliate.id,
    ).scalar() or 0

    sales = session.query(func.count(AffiliateConversion.id)).filter(
        AffiliateConversion.affiliate_id == affiliate.id,
        AffiliateConversion.conversion_type == CONVERSION_SALE,
    ).scalar() or 0

    amounts = session.query(AffiliateConversion.commission_amount).filter(
        AffiliateConversion.affiliate_id == affiliate.id,
    ).all()
    commission = sum((Decimal(a) for (a,) in amounts if a is not None), ZERO)

    return {
        'total_clicks': clicks,
        'total_leads': count_leads(session, affiliate_code=affiliate.referral_code),
        'total_bookings': len(affiliate_bookings(session, affiliate)),
        'total_sales': sales,
        'total_commission': quantize_money(commission),
    }


def resync_affiliate(session, affiliate) -> dict:
    """
    Write the scan back onto the affiliate. Does not commit.

    total_commission is cumulative: it is raised to the recomputed sum when a
    conversion is missing its increment, but never lowered.
    """
    totals = compute_affiliate_totals(session, affiliate)
    drift = {}
    for field, value in totals.items():
        cached = getattr(affiliate, field)
        if cached is None or _differs(cached, value):
            drift[field] = {'cached': cached, 'recomputed': value}
        if field == 'total_commission':
            value = max(Decimal(cached or 0), value)
        setattr(affiliate, field, value)

    if drift:
        logger.warning("Affiliate counter drift corrected: %s", _describe(drift),
                       extra={'affiliate_id': affiliate.id})
    return drift


def resync_all() -> dict:
    """Resync every closer and affiliate; commits once at the end."""
    session = get_session()
    drifted = []
    try:
        for closer in session.query(Closer).order_by(Closer.id).all():
            drift = resync_closer(session, closer)
            if drift:
                drifted.append(('closer', closer.id, drift))
        for affiliate in session.query(Affiliate).order_by(Affiliate.id).all():
            drift = resync_affiliate(session, affiliate)
            if drift:
                drifted.append(('affiliate', affiliate.id, drift))
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    for entity, entity_id, drift in drifted:
        notify_counter_drift(entity, entity_id, drift)

    logger.info("Counter resync complete: %d entities corrected", len(drifted))
    return {
        'corrected': [{'entity': e, 'id': i, 'fields': sorted(d)} for e, i, d in drifted],
    }


def _differs(cached, recomputed):
    if isinstance(recomputed, Decimal):
        return Decimal(cached) != recomputed
    return cached != recomputed


def _describe(drift):
    return ', '.join(f"{k} {v['cached']}→{v['recomputed']}" for k, v in sorted(drift.items()))
