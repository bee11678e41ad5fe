"""
Quiz models — questions carry an explicit role; sessions collect answers.

The role (name / email / other) is assigned when the quiz is authored, so the
lead qualifier reads a typed field instead of parsing prompt text.
"""
import uuid

from sqlalchemy import Column, Text, Boolean, Integer, DateTime, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base
from app.services.validation import utcnow


def _uuid():
    return str(uuid.uuid4())


class QuizQuestion(Base):
    __tablename__ = 'quiz_questions'

    id = Column(Text, primary_key=True, default=_uuid)
    quiz_type = Column(Text, nullable=False, default='default')
    prompt = Column(Text, nullable=False, default='')
    role = Column(Text, nullable=False, default='other')  # name / email / other
    position = Column(Integer, default=0)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)


class QuizSession(Base):
    __tablename__ = 'quiz_sessions'

    id = Column(Text, primary_key=True, default=_uuid)
    quiz_type = Column(Text, nullable=False, default='default')
    status = Column(Text, nullable=False, default='in_progress')  # in_progress / completed
    affiliate_code = Column(Text, nullable=True, index=True)
    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, nullable=True)

    answers = relationship(
        'QuizAnswer',
        back_populates='session',
        order_by='QuizAnswer.created_at',
        cascade='all, delete-orphan',
    )


class QuizAnswer(Base):
    __tablename__ = 'quiz_answers'
    __table_args__ = (
        UniqueConstraint('session_id', 'question_id', name='uq_quiz_answer_session_question'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Text, ForeignKey('quiz_sessions.id'), nullable=False, index=True)
    question_id = Column(Text, ForeignKey('quiz_questions.id'), nullable=False)
    value = Column(JSON, nullable=True)  # scalar or structured
    created_at = Column(DateTime, default=utcnow)

    session = relationship('QuizSession', back_populates='answers')
    question = relationship('QuizQuestion')
