"""
Quiz session lifecycle — start, answer, complete.

Completed sessions are immutable. Completing an attributed session that
qualifies as a lead resyncs Affiliate.total_leads from the deduplicated count.
Answers shaped like {"value": ..., "points": n} add to the session score,
which qualifies for a call at the configured qualification_threshold.
"""
import logging

from app.config import SESSION_COMPLETED, SESSION_IN_PROGRESS, SETTING_QUALIFICATION_THRESHOLD
from app.database import get_session
from app.errors import NotFoundError, ValidationError
from app.models.affiliate import Affiliate
from app.models.quiz import QuizAnswer, QuizQuestion, QuizSession
from app.services.attribution import resolve_affiliate
from app.services.leads import count_leads, qualify_session
from app.services.settings import load_settings
from app.services.validation import utcnow

logger = logging.getLogger('services.quiz')


def _session_to_dict(quiz_session):
    return {
        'id': quiz_session.id,
        'quiz_type': quiz_session.quiz_type,
        'status': quiz_session.status,
        'affiliate_code': quiz_session.affiliate_code,
        'started_at': quiz_session.started_at.isoformat() if quiz_session.started_at else None,
        'completed_at': quiz_session.completed_at.isoformat() if quiz_session.completed_at else None,
    }


def total_points(answers) -> int:
    total = 0
    for answer in answers:
        points = answer.value.get('points') if isinstance(answer.value, dict) else None
        if isinstance(points, (int, float)) and not isinstance(points, bool):
            total += points
    return int(total)


def start_session(quiz_type='default', affiliate_code=None, now=None) -> dict:
    session = get_session()
    try:
        affiliate = resolve_affiliate(session, affiliate_code)
        quiz_session = QuizSession(
            quiz_type=quiz_type or 'default',
            status=SESSION_IN_PROGRESS,
            affiliate_code=affiliate.referral_code if affiliate else None,
            started_at=now or utcnow(),
        )
        session.add(quiz_session)
        session.commit()
        logger.info("Quiz session %s started (%s)", quiz_session.id,
                    quiz_session.affiliate_code or 'organic')
        return _session_to_dict(quiz_session)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def record_answer(session_id, question_id, value) -> dict:
    """Insert or replace the answer to one question."""
    if not question_id:
        raise ValidationError('questionId is required')

    session = get_session()
    try:
        quiz_session = session.get(QuizSession, session_id)
        if quiz_session is None:
            raise NotFoundError('Quiz session', session_id)
        if quiz_session.status == SESSION_COMPLETED:
            raise ValidationError('Quiz session is already completed')
        if session.get(QuizQuestion, question_id) is None:
            raise NotFoundError('Question', question_id)

        answer = session.query(QuizAnswer).filter(
            QuizAnswer.session_id == session_id,
            QuizAnswer.question_id == question_id,
        ).first()
        if answer is None:
            answer = QuizAnswer(session_id=session_id, question_id=question_id, value=value)
            session.add(answer)
        else:
            answer.value = value

        session.commit()
        return {'session_id': session_id, 'question_id': question_id, 'value': answer.value}
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def complete_session(session_id, now=None) -> dict:
    session = get_session()
    try:
        quiz_session = session.get(QuizSession, session_id)
        if quiz_session is None:
            raise NotFoundError('Quiz session', session_id)
        if quiz_session.status == SESSION_COMPLETED:
            raise ValidationError('Quiz session is already completed')

        quiz_session.status = SESSION_COMPLETED
        quiz_session.completed_at = now or utcnow()
        session.flush()

        lead = qualify_session(quiz_session)
        if lead.is_lead and quiz_session.affiliate_code:
            affiliate = session.query(Affiliate).filter(
                Affiliate.referral_code == quiz_session.affiliate_code,
            ).first()
            if affiliate is not None:
                affiliate.total_leads = count_leads(session, affiliate_code=affiliate.referral_code)

        points = total_points(quiz_session.answers)
        threshold = load_settings(session)[SETTING_QUALIFICATION_THRESHOLD]

        session.commit()
        logger.info("Quiz session %s completed (lead=%s, points=%d)", session_id, lead.is_lead, points)
        result = _session_to_dict(quiz_session)
        result['is_lead'] = lead.is_lead
        result['total_points'] = points
        result['qualifies_for_call'] = points >= threshold
        return result
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
