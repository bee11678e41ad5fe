"""
Appointment models — booked calls and the append-only outcome audit trail.
"""
import uuid

from sqlalchemy import Column, Text, Integer, Numeric, DateTime, ForeignKey

from app.database import Base
from app.services.validation import utcnow


def _uuid():
    return str(uuid.uuid4())


class Appointment(Base):
    __tablename__ = 'appointments'

    id = Column(Text, primary_key=True, default=_uuid)
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False, index=True)  # normalized
    scheduled_at = Column(DateTime, nullable=False)
    status = Column(Text, nullable=False, default='scheduled')
    outcome = Column(Text, nullable=True)
    sale_value = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)
    recording_link = Column(Text, nullable=True)
    affiliate_code = Column(Text, nullable=True, index=True)
    closer_id = Column(Text, ForeignKey('closers.id'), nullable=True, index=True)
    quiz_session_id = Column(Text, ForeignKey('quiz_sessions.id'), nullable=True)
    conversion_seq = Column(Integer, nullable=False, default=0)  # transitions into 'converted'
    converted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AppointmentOutcomeEvent(Base):
    __tablename__ = 'appointment_outcome_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(Text, ForeignKey('appointments.id'), nullable=False, index=True)
    closer_id = Column(Text, nullable=True)
    previous_outcome = Column(Text, nullable=True)
    outcome = Column(Text, nullable=False)
    previous_sale_value = Column(Numeric(12, 2), nullable=True)
    sale_value = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)
    recording_link = Column(Text, nullable=True)
    conversion_id = Column(Text, nullable=True)
    duplicate_skipped = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
