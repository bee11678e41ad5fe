"""
Affiliate models — partner accounts, click log, commission ledger rows, payouts.

Affiliate.total_* columns are caches of the click / conversion tables; the
ledger service can recompute every one of them.
"""
import uuid
from decimal import Decimal

from sqlalchemy import Column, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from app.config import PAYOUT_PENDING
from app.database import Base
from app.services.validation import utcnow


def _uuid():
    return str(uuid.uuid4())


class Affiliate(Base):
    __tablename__ = 'affiliates'

    id = Column(Text, primary_key=True, default=_uuid)
    name = Column(Text, default='')
    email = Column(Text, default='')
    referral_code = Column(Text, nullable=False, unique=True)
    custom_link = Column(Text, nullable=True, unique=True)  # stored as '/code'
    commission_rate = Column(Numeric(5, 4), nullable=False, default=Decimal('0.1000'))
    tier = Column(Text, default='quiz')
    total_clicks = Column(Integer, nullable=False, default=0)
    total_leads = Column(Integer, nullable=False, default=0)
    total_bookings = Column(Integer, nullable=False, default=0)
    total_sales = Column(Integer, nullable=False, default=0)
    total_commission = Column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    is_approved = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    conversions = relationship('AffiliateConversion', back_populates='affiliate')
    payouts = relationship('AffiliatePayout', back_populates='affiliate')


class AffiliateClick(Base):
    __tablename__ = 'affiliate_clicks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    affiliate_id = Column(Text, ForeignKey('affiliates.id'), nullable=False, index=True)
    referral_code = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class AffiliateConversion(Base):
    __tablename__ = 'affiliate_conversions'
    __table_args__ = (
        Index('ix_affiliate_conversions_status_hold', 'commission_status', 'hold_until'),
    )

    id = Column(Text, primary_key=True, default=_uuid)
    affiliate_id = Column(Text, ForeignKey('affiliates.id'), nullable=False, index=True)
    appointment_id = Column(Text, ForeignKey('appointments.id'), nullable=True, index=True)
    referral_code = Column(Text, nullable=False)
    conversion_type = Column(Text, nullable=False)               # booking / sale
    sale_value = Column(Numeric(12, 2), nullable=True)
    commission_amount = Column(Numeric(12, 2), nullable=True)
    commission_status = Column(Text, nullable=False, default='held')  # held / available / paid
    hold_until = Column(DateTime, nullable=False)
    idempotency_key = Column(Text, nullable=True, unique=True)   # '<appointment_id>:<type>:<seq>'
    created_at = Column(DateTime, default=utcnow, index=True)
    released_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    affiliate = relationship('Affiliate', back_populates='conversions')


class AffiliatePayout(Base):
    __tablename__ = 'affiliate_payouts'

    id = Column(Text, primary_key=True, default=_uuid)
    affiliate_id = Column(Text, ForeignKey('affiliates.id'), nullable=False, index=True)
    amount_due = Column(Numeric(12, 2), nullable=False)
    status = Column(Text, nullable=False, default=PAYOUT_PENDING)  # pending / completed
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    paid_at = Column(DateTime, nullable=True)

    affiliate = relationship('Affiliate', back_populates='payouts')
