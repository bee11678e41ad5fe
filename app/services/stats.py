"""
Stats aggregator — read-only, time-bucketed rollups for dashboards.

Ranges of one day or less are bucketed hourly, longer ranges daily. Each
bucket is the half-open window [start, end).

Commission per bucket is sale_value × commission_rate of the affiliate's
converted appointments, by conversion time. When that scan finds nothing but
the affiliate has cached total_commission (rows migrated from before
per-event tracking), total_commission is spread evenly across buckets that saw
a click or a booking and the series is flagged `commission_estimated`. The
ledger, not this module, is the source of truth for amounts.
"""
import bisect
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_DOWN

from sqlalchemy import func

from app.config import COMMISSION_AVAILABLE, COMMISSION_HELD, PAYOUT_COMPLETED, SETTING_TERMINAL_OUTCOMES
from app.database import get_session
from app.errors import NotFoundError, ValidationError
from app.models.affiliate import Affiliate, AffiliateClick, AffiliateConversion, AffiliatePayout
from app.models.appointment import Appointment
from app.models.closer import Closer
from app.services.attribution import affiliate_bookings, affiliate_sales, sale_time
from app.services.counters import compute_closer_stats
from app.services.leads import count_leads
from app.services.settings import load_settings
from app.services.validation import CENTS, quantize_money, utcnow

logger = logging.getLogger('services.stats')

DEFAULT_RANGE_DAYS = 30
ZERO = Decimal('0.00')


def build_buckets(start, end):
    """Hourly buckets for ranges up to one day, daily buckets otherwise."""
    if end < start:
        raise ValidationError('end must not be before start')

    if end - start <= timedelta(days=1):
        step = timedelta(hours=1)
        cursor = start.replace(minute=0, second=0, microsecond=0)
        # Ranges crossing midnight need the date to keep labels unique.
        hour_format = '%H:00' if start.date() == end.date() else '%Y-%m-%d %H:00'
        label = lambda dt: dt.strftime(hour_format)
        granularity = 'hour'
    else:
        step = timedelta(days=1)
        cursor = start.replace(hour=0, minute=0, second=0, microsecond=0)
        label = lambda dt: dt.strftime('%Y-%m-%d')
        granularity = 'day'

    buckets = []
    while cursor <= end:
        buckets.append({'label': label(cursor), 'start': cursor, 'end': cursor + step})
        cursor += step
    return granularity, buckets


def _bucket_of(starts, ts):
    if ts is None:
        return None
    i = bisect.bisect_right(starts, ts) - 1
    return i if i >= 0 else None


def affiliate_time_series(session, affiliate, start, end) -> dict:
    granularity, buckets = build_buckets(start, end)
    starts = [b['start'] for b in buckets]
    range_start, range_end = buckets[0]['start'], buckets[-1]['end']

    series = [{
        'label': b['label'],
        'start': b['start'].isoformat(),
        'clicks': 0,
        'leads': 0,
        'bookings': 0,
        'commission': ZERO,
    } for b in buckets]

    clicks = session.query(AffiliateClick.created_at).filter(
        AffiliateClick.affiliate_id == affiliate.id,
        AffiliateClick.created_at >= range_start,
        AffiliateClick.created_at < range_end,
    ).all()
    for (ts,) in clicks:
        i = _bucket_of(starts, ts)
        if i is not None:
            series[i]['clicks'] += 1

    # Dedup is per bucket: one person counts once per hour/day.
    for point, bucket in zip(series, buckets):
        point['leads'] = count_leads(
            session,
            affiliate_code=affiliate.referral_code,
            start=bucket['start'],
            end=bucket['end'] - timedelta(microseconds=1),
        )

    for appointment in affiliate_bookings(session, affiliate, range_start, range_end - timedelta(microseconds=1)):
        i = _bucket_of(starts, appointment.created_at)
        if i is not None:
            series[i]['bookings'] += 1

    rate = Decimal(affiliate.commission_rate or 0)
    for appointment in affiliate_sales(session, affiliate, range_start, range_end - timedelta(microseconds=1)):
        if appointment.sale_value is None:
            continue
        i = _bucket_of(starts, sale_time(appointment))
        if i is not None:
            series[i]['commission'] += Decimal(appointment.sale_value) * rate

    estimated = False
    scanned = sum((p['commission'] for p in series), ZERO)
    cached = quantize_money(affiliate.total_commission or 0)
    if scanned == 0 and cached > 0:
        active = [p for p in series if p['clicks'] or p['bookings']]
        if active:
            estimated = True
            share = (cached / len(active)).quantize(CENTS, rounding=ROUND_DOWN)
            leftover = int((cached - share * len(active)) / CENTS)
            # Leftover cents go one each to the earliest active buckets.
            for i, p in enumerate(active):
                p['commission'] = share + (CENTS if i < leftover else ZERO)
            logger.info("Commission series estimated from cached total over %d bucket(s)", len(active),
                        extra={'affiliate_id': affiliate.id})

    for p in series:
        p['commission'] = float(quantize_money(p['commission']))

    return {'granularity': granularity, 'commission_estimated': estimated, 'series': series}


def _commission_by_status(session, affiliate_id, status):
    total = session.query(func.sum(AffiliateConversion.commission_amount)).filter(
        AffiliateConversion.affiliate_id == affiliate_id,
        AffiliateConversion.commission_status == status,
    ).scalar()
    return float(quantize_money(total or 0))


def affiliate_summary(affiliate_id, start=None, end=None) -> dict:
    """Ledger totals for the affiliate plus the bucketed series for [start, end]."""
    end = end or utcnow()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)

    session = get_session()
    try:
        affiliate = session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise NotFoundError('Affiliate', affiliate_id)

        paid = session.query(func.sum(AffiliatePayout.amount_due)).filter(
            AffiliatePayout.affiliate_id == affiliate_id,
            AffiliatePayout.status == PAYOUT_COMPLETED,
        ).scalar()

        summary = {
            'total_clicks': affiliate.total_clicks,
            'total_leads': affiliate.total_leads,
            'total_bookings': affiliate.total_bookings,
            'total_sales': affiliate.total_sales,
            'total_commission': float(quantize_money(affiliate.total_commission or 0)),
            'total_paid_commission': float(quantize_money(paid or 0)),
            'held_commission': _commission_by_status(session, affiliate_id, COMMISSION_HELD),
            'available_commission': _commission_by_status(session, affiliate_id, COMMISSION_AVAILABLE),
        }
        timeline = affiliate_time_series(session, affiliate, start, end)
    finally:
        session.close()

    return {
        'affiliate_id': affiliate_id,
        'referral_code': affiliate.referral_code,
        'range': {'start': start.isoformat(), 'end': end.isoformat()},
        'summary': summary,
        **timeline,
    }


def closer_summary(closer_id) -> dict:
    """
    Cached counters plus a conversion rate computed from the appointment scan.

    open_follow_ups counts the closer's calls whose recorded outcome is not
    terminal, so further contact is still expected.
    """
    session = get_session()
    try:
        closer = session.get(Closer, closer_id)
        if closer is None:
            raise NotFoundError('Closer', closer_id)
        scan = compute_closer_stats(session, closer_id)
        terminal = load_settings(session)[SETTING_TERMINAL_OUTCOMES]
        open_follow_ups = session.query(func.count(Appointment.id)).filter(
            Appointment.closer_id == closer_id,
            Appointment.outcome.isnot(None),
            Appointment.outcome.notin_(terminal),
        ).scalar() or 0
        return {
            'closer_id': closer_id,
            'total_calls': closer.total_calls,
            'total_conversions': closer.total_conversions,
            'total_revenue': float(quantize_money(closer.total_revenue or 0)),
            'conversion_rate': scan['conversion_rate'],
            'open_follow_ups': open_follow_ups,
        }
    finally:
        session.close()
