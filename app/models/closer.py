"""
Closer model — sales agents taking booked calls.

total_calls / total_conversions / total_revenue / conversion_rate are caches of
a scan over the closer's appointments (see services.counters.compute_closer_stats).
"""
import uuid
from decimal import Decimal

from sqlalchemy import Column, Text, Boolean, Integer, Float, Numeric, DateTime

from app.database import Base
from app.services.validation import utcnow


def _uuid():
    return str(uuid.uuid4())


class Closer(Base):
    __tablename__ = 'closers'

    id = Column(Text, primary_key=True, default=_uuid)
    name = Column(Text, default='')
    email = Column(Text, default='')
    total_calls = Column(Integer, nullable=False, default=0)
    total_conversions = Column(Integer, nullable=False, default=0)
    total_revenue = Column(Numeric(12, 2), nullable=False, default=Decimal('0.00'))
    conversion_rate = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True)
    is_approved = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)
