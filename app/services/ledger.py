"""
Commission ledger — conversion creation, outcome updates, hold release.

Commission lifecycle per AffiliateConversion:

    held ──(hold_until <= now, or force-release)──▶ available ──(payout)──▶ paid

TRANSITIONS is the only place that says which moves are legal. Every status
write goes through a compare-and-swap (UPDATE ... WHERE commission_status = <from>)
or through assert_transition(), so concurrent sweeps never double-move a row.

A sale conversion is created at most once per transition of an appointment
into 'converted':
  - idempotency key '<appointment_id>:sale:<conversion_seq>' (unique column)
  - plus a short time-window guard on (affiliate, sale_value) that catches
    converted → other → converted flapping from retried clients

Affiliate.total_commission / total_sales are incremented exactly once, in the
same transaction as the insert. Release and payout never touch them.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from app.config import (
    COMMISSION_AVAILABLE,
    COMMISSION_HELD,
    COMMISSION_PAID,
    CONVERSION_BOOKING,
    CONVERSION_SALE,
    DUPLICATE_GUARD_SECONDS,
    OUTCOMES,
    OUTCOME_CONVERTED,
    APPOINTMENT_COMPLETED,
)
from app.database import get_session
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.affiliate import Affiliate, AffiliateConversion
from app.models.appointment import Appointment, AppointmentOutcomeEvent
from app.models.closer import Closer
from app.services.attribution import is_affiliate_sale, resolve_affiliate
from app.services.counters import is_conversion, resync_closer
from app.services.notifications import notify_commissions_released, notify_counter_drift
from app.services.settings import get_commission_hold_days, is_terminal_outcome, load_settings
from app.services.validation import parse_money, quantize_money, utcnow

logger = logging.getLogger('services.ledger')

TRANSITIONS = {
    COMMISSION_HELD: (COMMISSION_AVAILABLE,),
    COMMISSION_AVAILABLE: (COMMISSION_PAID,),
    COMMISSION_PAID: (),
}


def assert_transition(current, target):
    """Raise ConflictError unless current → target is in TRANSITIONS."""
    if target in TRANSITIONS.get(current, ()):
        return
    sources = [s for s, targets in TRANSITIONS.items() if target in targets]
    expected = ' or '.join(sources) if sources else 'a valid'
    raise ConflictError(f'commission is not in {expected} status (current: {current})')


def compute_commission(sale_value, rate) -> Decimal:
    return quantize_money(Decimal(sale_value) * Decimal(rate or 0))


def sale_idempotency_key(appointment_id, seq) -> str:
    return f'{appointment_id}:sale:{seq}'


def conversion_to_dict(conversion):
    return {
        'id': conversion.id,
        'affiliate_id': conversion.affiliate_id,
        'appointment_id': conversion.appointment_id,
        'referral_code': conversion.referral_code,
        'conversion_type': conversion.conversion_type,
        'sale_value': _money(conversion.sale_value),
        'commission_amount': _money(conversion.commission_amount),
        'commission_status': conversion.commission_status,
        'hold_until': conversion.hold_until.isoformat() if conversion.hold_until else None,
        'created_at': conversion.created_at.isoformat() if conversion.created_at else None,
        'released_at': conversion.released_at.isoformat() if conversion.released_at else None,
        'paid_at': conversion.paid_at.isoformat() if conversion.paid_at else None,
    }


def _money(value):
    return float(value) if value is not None else None


# ── Creation ─────────────────────────────────────────────────────────────────

def _is_recent_duplicate(session, affiliate_id, sale_value, now):
    if DUPLICATE_GUARD_SECONDS <= 0:
        return False
    cutoff = now - timedelta(seconds=DUPLICATE_GUARD_SECONDS)
    return session.query(AffiliateConversion.id).filter(
        AffiliateConversion.affiliate_id == affiliate_id,
        AffiliateConversion.conversion_type == CONVERSION_SALE,
        AffiliateConversion.sale_value == sale_value,
        AffiliateConversion.created_at >= cutoff,
    ).first() is not None


def create_sale_conversion(session, appointment, affiliate, sale_value, now):
    """
    Insert a held sale conversion for appointment's current conversion_seq and
    bump the affiliate's totals. Does not commit.

    Returns (conversion, duplicate_skipped). A duplicate is logged and skipped,
    never raised.
    """
    key = sale_idempotency_key(appointment.id, appointment.conversion_seq)
    ctx = {'appointment_id': appointment.id, 'affiliate_id': affiliate.id}

    existing = session.query(AffiliateConversion.id).filter(
        AffiliateConversion.idempotency_key == key,
    ).first()
    if existing is not None or _is_recent_duplicate(session, affiliate.id, sale_value, now):
        logger.warning("Duplicate sale conversion skipped (key=%s, sale_value=%s)", key, sale_value, extra=ctx)
        return None, True

    commission = compute_commission(sale_value, affiliate.commission_rate)
    hold_days = get_commission_hold_days(session)

    conversion = AffiliateConversion(
        affiliate_id=affiliate.id,
        appointment_id=appointment.id,
        referral_code=affiliate.referral_code,
        conversion_type=CONVERSION_SALE,
        sale_value=sale_value,
        commission_amount=commission,
        commission_status=COMMISSION_HELD,
        hold_until=now + timedelta(days=hold_days),
        idempotency_key=key,
        created_at=now,
    )

    # Flush pending appointment writes first so the savepoint sits inside an
    # open transaction.
    session.flush()
    try:
        with session.begin_nested():
            session.add(conversion)
    except IntegrityError:
        logger.warning("Duplicate sale conversion rejected by idempotency key %s", key, extra=ctx)
        return None, True

    affiliate.total_commission = Affiliate.total_commission + commission
    affiliate.total_sales = Affiliate.total_sales + 1
    session.flush()

    logger.info("Sale conversion %s created: sale %s × rate %s = commission %s, held until %s",
                conversion.id, sale_value, affiliate.commission_rate, commission,
                conversion.hold_until.date().isoformat(),
                extra={**ctx, 'conversion_id': conversion.id})
    return conversion, False


def create_booking_conversion(session, appointment, affiliate, now):
    """Record an affiliate-sourced booked call (no commission). Does not commit."""
    key = f'{appointment.id}:booking'
    if session.query(AffiliateConversion.id).filter(
        AffiliateConversion.idempotency_key == key,
    ).first() is not None:
        return None

    conversion = AffiliateConversion(
        affiliate_id=affiliate.id,
        appointment_id=appointment.id,
        referral_code=affiliate.referral_code,
        conversion_type=CONVERSION_BOOKING,
        commission_amount=Decimal('0.00'),
        commission_status=COMMISSION_HELD,
        hold_until=now + timedelta(days=get_commission_hold_days(session)),
        idempotency_key=key,
        created_at=now,
    )
    session.add(conversion)
    affiliate.total_bookings = Affiliate.total_bookings + 1
    session.flush()

    logger.info("Booking conversion %s recorded", conversion.id,
                extra={'appointment_id': appointment.id, 'affiliate_id': affiliate.id,
                       'conversion_id': conversion.id})
    return conversion


# ── Outcome updates ──────────────────────────────────────────────────────────

def _apply_closer_deltas(closer, prev_outcome, prev_sale, outcome, sale):
    was = is_conversion(prev_outcome, prev_sale)
    now_is = is_conversion(outcome, sale)
    revenue = Decimal(closer.total_revenue or 0)

    if not was and now_is:
        closer.total_conversions = (closer.total_conversions or 0) + 1
        closer.total_revenue = revenue + sale
    elif was and not now_is:
        closer.total_conversions = max((closer.total_conversions or 0) - 1, 0)
        closer.total_revenue = revenue - Decimal(prev_sale)
    elif was and now_is and Decimal(prev_sale) != sale:
        closer.total_revenue = revenue + (sale - Decimal(prev_sale))


def update_outcome(appointment_id, outcome, sale_value=None, notes=None,
                   recording_link=None, closer_id=None, now=None) -> dict:
    """
    Record a call outcome for an appointment.

    closer_id, when given, scopes the lookup to that closer's appointments
    (a closer cannot update someone else's call).

    Returns a dict with the updated appointment, the conversion created (if
    any), whether a duplicate conversion was suppressed, and whether the
    outcome is terminal (no further contact expected) under current settings.
    """
    if not outcome:
        raise ValidationError('outcome is required')
    if outcome not in OUTCOMES:
        raise ValidationError(f'outcome must be one of: {", ".join(OUTCOMES)}')
    sale_value = parse_money(sale_value, 'sale_value')
    now = now or utcnow()

    session = get_session()
    drift = {}
    try:
        appointment = session.get(Appointment, appointment_id, with_for_update=True)
        if appointment is None or (closer_id is not None and appointment.closer_id != closer_id):
            raise NotFoundError('Appointment', appointment_id)

        previous_outcome = appointment.outcome
        previous_sale = appointment.sale_value
        entering_converted = outcome == OUTCOME_CONVERTED and previous_outcome != OUTCOME_CONVERTED

        appointment.outcome = outcome
        appointment.sale_value = sale_value
        appointment.notes = notes or None
        appointment.recording_link = recording_link or None
        appointment.status = APPOINTMENT_COMPLETED
        appointment.updated_at = now
        if entering_converted:
            appointment.conversion_seq = (appointment.conversion_seq or 0) + 1
            appointment.converted_at = now
        elif outcome != OUTCOME_CONVERTED:
            appointment.converted_at = None

        conversion = None
        duplicate_skipped = False
        if entering_converted and sale_value is not None and sale_value > 0:
            affiliate = resolve_affiliate(session, appointment.affiliate_code)
            if is_affiliate_sale(appointment, affiliate):
                conversion, duplicate_skipped = create_sale_conversion(
                    session, appointment, affiliate, sale_value, now,
                )
        elif previous_outcome == OUTCOME_CONVERTED and outcome == OUTCOME_CONVERTED:
            logger.info("Appointment already converted, no new conversion",
                        extra={'appointment_id': appointment.id})

        if appointment.closer_id:
            closer = session.get(Closer, appointment.closer_id, with_for_update=True)
            if closer is not None:
                _apply_closer_deltas(closer, previous_outcome, previous_sale, outcome, sale_value)
                session.flush()
                drift = resync_closer(session, closer)

        terminal = is_terminal_outcome(outcome, load_settings(session))

        session.add(AppointmentOutcomeEvent(
            appointment_id=appointment.id,
            closer_id=appointment.closer_id,
            previous_outcome=previous_outcome,
            outcome=outcome,
            previous_sale_value=previous_sale,
            sale_value=sale_value,
            notes=notes or None,
            recording_link=recording_link or None,
            conversion_id=conversion.id if conversion else None,
            duplicate_skipped=1 if duplicate_skipped else 0,
            created_at=now,
        ))

        session.commit()
        logger.info("Outcome %s → %s recorded", previous_outcome, outcome,
                    extra={'appointment_id': appointment.id, 'closer_id': appointment.closer_id})

        result = {
            'appointment': appointment_to_dict(appointment),
            'conversion': conversion_to_dict(conversion) if conversion else None,
            'duplicate_skipped': duplicate_skipped,
            'terminal': terminal,
        }
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if drift:
        notify_counter_drift('closer', result['appointment']['closer_id'], drift)
    return result


def appointment_to_dict(appointment):
    return {
        'id': appointment.id,
        'customer_name': appointment.customer_name,
        'customer_email': appointment.customer_email,
        'scheduled_at': appointment.scheduled_at.isoformat() if appointment.scheduled_at else None,
        'status': appointment.status,
        'outcome': appointment.outcome,
        'sale_value': _money(appointment.sale_value),
        'notes': appointment.notes,
        'recording_link': appointment.recording_link,
        'affiliate_code': appointment.affiliate_code,
        'closer_id': appointment.closer_id,
        'converted_at': appointment.converted_at.isoformat() if appointment.converted_at else None,
        'created_at': appointment.created_at.isoformat() if appointment.created_at else None,
    }


# ── Release ──────────────────────────────────────────────────────────────────

def _expired_held(session, now):
    return session.query(AffiliateConversion.id).filter(
        AffiliateConversion.commission_status == COMMISSION_HELD,
        AffiliateConversion.hold_until <= now,
    ).with_for_update(skip_locked=True).all()


def release_held_commissions(now=None) -> dict:
    """
    Move every held conversion whose hold has expired to available.

    Idempotent: only rows still 'held' are touched, so re-running (or running
    concurrently; locked rows are skipped) is a no-op for released rows.
    """
    now = now or utcnow()
    session = get_session()
    try:
        ids = [r.id for r in _expired_held(session, now)]
        moved = []
        if ids:
            result = session.execute(
                update(AffiliateConversion)
                .where(
                    AffiliateConversion.id.in_(ids),
                    AffiliateConversion.commission_status == COMMISSION_HELD,
                )
                .values(commission_status=COMMISSION_AVAILABLE, released_at=now)
                .returning(AffiliateConversion.id, AffiliateConversion.commission_amount)
                .execution_options(synchronize_session=False)
            )
            moved = result.all()
        session.commit()
        released = len(moved)
        amount = sum((Decimal(r.commission_amount) for r in moved if r.commission_amount is not None),
                     Decimal('0.00'))
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    amount = quantize_money(amount)
    logger.info("Release sweep at %s: %d commission(s) released, total %s", now.isoformat(), released, amount)
    notify_commissions_released(released, amount)
    return {
        'released_count': released,
        'released_amount': float(amount),
        'run_at': now.isoformat(),
    }


def force_release(conversion_id, now=None) -> dict:
    """Admin override: held → available regardless of hold_until."""
    now = now or utcnow()
    session = get_session()
    try:
        result = session.execute(
            update(AffiliateConversion)
            .where(
                AffiliateConversion.id == conversion_id,
                AffiliateConversion.commission_status == COMMISSION_HELD,
            )
            .values(commission_status=COMMISSION_AVAILABLE, released_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            conversion = session.get(AffiliateConversion, conversion_id)
            if conversion is None:
                raise NotFoundError('Commission', conversion_id)
            assert_transition(conversion.commission_status, COMMISSION_AVAILABLE)
        session.commit()

        conversion = session.get(AffiliateConversion, conversion_id)
        logger.info("Commission force-released (amount %s)", conversion.commission_amount,
                    extra={'conversion_id': conversion_id, 'affiliate_id': conversion.affiliate_id})
        return conversion_to_dict(conversion)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
