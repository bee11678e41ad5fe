"""
Lead qualification + deduplication — the canonical "how many leads" answer.

A lead is a completed quiz session with a non-empty name answer and a non-empty
email answer. Answers are matched by their question's role, which is set when
the quiz is authored. Repeat sessions for one person collapse to the most
recently completed one, keyed by normalized email.

Every lead count in the system goes through count_leads(); dashboards must not
re-implement the filter.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import selectinload

from app.config import SESSION_COMPLETED, ROLE_NAME, ROLE_EMAIL
from app.models.quiz import QuizSession, QuizAnswer
from app.services.validation import normalize_email

logger = logging.getLogger('services.leads')


@dataclass
class LeadResult:
    """Qualifier output for one quiz session."""
    is_lead: bool
    session_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    affiliate_code: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @property
    def sort_time(self) -> Optional[datetime]:
        return self.completed_at or self.started_at

    def to_dict(self):
        return {
            'session_id': self.session_id,
            'name': self.name,
            'email': self.email,
            'affiliate_code': self.affiliate_code,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


def _answer_text(value) -> str:
    """Coerce an answer value to trimmed text. None and empty containers → ''."""
    if value is None:
        return ''
    if isinstance(value, (list, tuple, dict)) and not value:
        return ''
    if isinstance(value, dict) and 'value' in value:
        return _answer_text(value['value'])
    return str(value).strip()


def _answer_for_role(answers, role):
    for answer in answers:
        question = getattr(answer, 'question', None)
        if question is not None and question.role == role:
            return answer
    return None


def qualify_session(session) -> LeadResult:
    """
    Decide whether one quiz session is a lead.

    Pure function over a QuizSession-like object (status, answers[].value,
    answers[].question.role). Malformed input is never an error; it is simply
    not a lead.
    """
    try:
        if session.status != SESSION_COMPLETED:
            return LeadResult(is_lead=False, session_id=session.id)

        answers = list(session.answers or [])
        name = _answer_text(getattr(_answer_for_role(answers, ROLE_NAME), 'value', None))
        email = _answer_text(getattr(_answer_for_role(answers, ROLE_EMAIL), 'value', None))

        return LeadResult(
            is_lead=bool(name) and bool(email),
            session_id=session.id,
            name=name or None,
            email=email or None,
            affiliate_code=session.affiliate_code,
            started_at=session.started_at,
            completed_at=session.completed_at,
        )
    except (AttributeError, TypeError):
        logger.debug("Malformed quiz session treated as non-lead", exc_info=True)
        return LeadResult(is_lead=False, session_id=getattr(session, 'id', None))


def dedup_leads(leads: Iterable[LeadResult]) -> List[LeadResult]:
    """
    Collapse leads to one per normalized email.

    Keeps the entry with the latest completed_at (falling back to started_at).
    Ties are broken by session id so the result is deterministic. Output is
    ordered newest first.
    """
    best = {}
    for lead in leads:
        if not lead.is_lead:
            continue
        key = lead.normalized_email
        if not key:
            continue
        current = best.get(key)
        if current is None or _rank(lead) > _rank(current):
            best[key] = lead
    return sorted(best.values(), key=_rank, reverse=True)


def _rank(lead: LeadResult):
    return (lead.sort_time or datetime.min, lead.session_id or '')


# ── Database-backed queries ──────────────────────────────────────────────────

def load_leads(session, affiliate_code=None, start=None, end=None, quiz_type=None) -> List[LeadResult]:
    """
    Qualify + dedup every completed session matching the filters.

    start/end bound completed_at (inclusive). affiliate_code filters on the
    session's stored (canonical) referral code.
    """
    query = session.query(QuizSession).options(
        selectinload(QuizSession.answers).selectinload(QuizAnswer.question),
    ).filter(QuizSession.status == SESSION_COMPLETED)

    if affiliate_code:
        query = query.filter(QuizSession.affiliate_code == affiliate_code)
    if quiz_type:
        query = query.filter(QuizSession.quiz_type == quiz_type)
    if start is not None:
        query = query.filter(QuizSession.completed_at >= start)
    if end is not None:
        query = query.filter(QuizSession.completed_at <= end)

    return dedup_leads(qualify_session(s) for s in query.all())


def count_leads(session, affiliate_code=None, start=None, end=None, quiz_type=None) -> int:
    """Canonical deduplicated lead count."""
    return len(load_leads(session, affiliate_code=affiliate_code, start=start, end=end, quiz_type=quiz_type))


def lead_emails(session, affiliate_code) -> set:
    """Normalized emails of every qualifying lead attributed to affiliate_code."""
    if not affiliate_code:
        return set()
    return {lead.normalized_email for lead in load_leads(session, affiliate_code=affiliate_code)}
