"""
Setting model — keyed configuration rows (value stored as text).
"""
from sqlalchemy import Column, Text, DateTime

from app.database import Base
from app.services.validation import utcnow


class Setting(Base):
    __tablename__ = 'settings'

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
