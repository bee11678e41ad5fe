"""
Appointment intake — CreateAppointment.

Validates the booking, attributes it, assigns a closer (explicit or round-robin)
and records the affiliate booking conversion when the call came through the
affiliate's own quiz funnel.
"""
import logging

from app.database import get_session
from app.errors import NotFoundError, ValidationError
from app.models.appointment import Appointment
from app.models.closer import Closer
from app.models.quiz import QuizSession
from app.services.attribution import is_affiliate_booking, resolve_affiliate
from app.services.ledger import appointment_to_dict, create_booking_conversion
from app.services.notifications import notify_unassigned_appointments
from app.services.round_robin import assign_round_robin, assign_to, assignment_lock
from app.services.validation import normalize_email, parse_timestamp, require_text, utcnow

logger = logging.getLogger('services.appointments')


def create_appointment(data: dict, now=None) -> dict:
    """
    Book a call.

    data keys: customerName, customerEmail, scheduledAt (required);
    affiliateCode, closerId, quizSessionId (optional).

    The returned dict carries `unassigned: True` when no eligible closer
    existed; the appointment is still created.
    """
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    name = require_text(data, 'customerName')
    email = normalize_email(require_text(data, 'customerEmail'))
    if '@' not in email:
        raise ValidationError('customerEmail must be an email address')
    scheduled_at = parse_timestamp(data.get('scheduledAt'), 'scheduledAt')
    closer_id = str(data.get('closerId') or '').strip() or None
    quiz_session_id = str(data.get('quizSessionId') or '').strip() or None
    now = now or utcnow()

    session = get_session()
    try:
        closer = None
        if closer_id:
            closer = session.get(Closer, closer_id, with_for_update=True)
            if closer is None:
                raise NotFoundError('Closer', closer_id)
        if quiz_session_id and session.get(QuizSession, quiz_session_id) is None:
            raise NotFoundError('Quiz session', quiz_session_id)

        affiliate = resolve_affiliate(session, data.get('affiliateCode'))

        appointment = Appointment(
            customer_name=name,
            customer_email=email,
            scheduled_at=scheduled_at,
            affiliate_code=affiliate.referral_code if affiliate else None,
            quiz_session_id=quiz_session_id,
            created_at=now,
            updated_at=now,
        )
        session.add(appointment)
        session.flush()

        if affiliate is not None and is_affiliate_booking(appointment, affiliate, session=session):
            create_booking_conversion(session, appointment, affiliate, now)

        if closer is not None:
            assign_to(session, appointment, closer)
            session.commit()
        else:
            with assignment_lock():
                closer = assign_round_robin(session, appointment)
                session.commit()

        result = appointment_to_dict(appointment)
        result['unassigned'] = closer is None
        logger.info("Appointment created (%s)", 'unassigned' if closer is None else f'closer {closer.id}',
                    extra={'appointment_id': appointment.id,
                           'affiliate_id': affiliate.id if affiliate else None})
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if result['unassigned']:
        notify_unassigned_appointments(1, appointment_id=result['id'])
    return result
