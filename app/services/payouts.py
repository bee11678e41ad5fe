"""
Payouts — the available → paid half of the commission lifecycle.
"""
import logging
from decimal import Decimal

from sqlalchemy import func

from app.config import (
    COMMISSION_AVAILABLE,
    COMMISSION_HELD,
    COMMISSION_PAID,
    COMMISSION_STATUSES,
    PAYOUT_COMPLETED,
    SETTING_MINIMUM_PAYOUT,
)
from app.database import get_session
from app.errors import NotFoundError, ValidationError
from app.models.affiliate import Affiliate, AffiliateConversion, AffiliatePayout
from app.services.ledger import assert_transition
from app.services.settings import get_setting
from app.services.validation import parse_money, quantize_money, utcnow

logger = logging.getLogger('services.payouts')


def record_payout(affiliate_id, amount, notes=None, now=None) -> dict:
    """
    Pay out available commission to an affiliate.

    Available conversions are marked paid oldest first while their cumulative
    amount stays within the payout. Affiliate.total_commission is cumulative
    earnings and is left alone.
    """
    amount = parse_money(amount, 'amount', required=True)
    if amount <= 0:
        raise ValidationError('amount must be greater than zero')
    now = now or utcnow()

    session = get_session()
    try:
        minimum = get_setting(session, SETTING_MINIMUM_PAYOUT)
        if amount < minimum:
            raise ValidationError(f'Minimum payout amount is ${minimum}')

        affiliate = session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise NotFoundError('Affiliate', affiliate_id)

        available = session.query(AffiliateConversion).filter(
            AffiliateConversion.affiliate_id == affiliate_id,
            AffiliateConversion.commission_status == COMMISSION_AVAILABLE,
        ).order_by(
            AffiliateConversion.created_at.asc(), AffiliateConversion.id.asc(),
        ).with_for_update().all()

        total_available = sum((Decimal(c.commission_amount or 0) for c in available), Decimal('0.00'))
        if total_available < amount:
            raise ValidationError('Insufficient available commission')

        payout = AffiliatePayout(
            affiliate_id=affiliate_id,
            amount_due=amount,
            status=PAYOUT_COMPLETED,
            notes=notes or None,
            created_at=now,
            paid_at=now,
        )
        session.add(payout)

        covered = Decimal('0.00')
        paid_ids = []
        for conversion in available:
            value = Decimal(conversion.commission_amount or 0)
            if covered + value > amount:
                break
            assert_transition(conversion.commission_status, COMMISSION_PAID)
            conversion.commission_status = COMMISSION_PAID
            conversion.paid_at = now
            covered += value
            paid_ids.append(conversion.id)

        session.commit()
        logger.info("Payout %s of %s recorded, %d conversion(s) marked paid",
                    payout.id, amount, len(paid_ids), extra={'affiliate_id': affiliate_id})
        return {
            'id': payout.id,
            'affiliate_id': affiliate_id,
            'amount': float(amount),
            'status': payout.status,
            'notes': payout.notes,
            'paid_at': now.isoformat(),
            'conversions_paid': paid_ids,
        }
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_commission_status(now=None) -> dict:
    """Counts and amounts per lifecycle stage, plus how many are due for release."""
    now = now or utcnow()
    session = get_session()
    try:
        rows = session.query(
            AffiliateConversion.commission_status,
            func.count(AffiliateConversion.id),
            func.sum(AffiliateConversion.commission_amount),
        ).group_by(AffiliateConversion.commission_status).all()

        ready = session.query(func.count(AffiliateConversion.id)).filter(
            AffiliateConversion.commission_status == COMMISSION_HELD,
            AffiliateConversion.hold_until <= now,
        ).scalar() or 0
    finally:
        session.close()

    by_status = {status: (count, amount) for status, count, amount in rows}

    def _stage(status):
        count, amount = by_status.get(status, (0, None))
        return {'count': count, 'amount': float(quantize_money(amount or 0))}

    return {
        'ready_for_release': ready,
        **{status: _stage(status) for status in COMMISSION_STATUSES},
        'checked_at': now.isoformat(),
    }
