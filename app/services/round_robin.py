"""
Round-robin assigner — hands unclaimed appointments to the least-loaded closer.

Pick-minimum, assign, and increment happen inside one DB transaction while a
Redis lock is held, with a row lock on the chosen closer (SELECT ... FOR UPDATE
on Postgres). Concurrent assignments therefore serialize instead of both
observing the same minimum.

No eligible closer is not an error: the appointment stays unassigned and
reconcile_unassigned() picks it up later.
"""
import logging
from contextlib import contextmanager

from redis.exceptions import RedisError

from app import extensions
from app.config import (
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_SCHEDULED,
    ASSIGNABLE_STATUSES,
    ROUND_ROBIN_LOCK_KEY,
    ROUND_ROBIN_LOCK_TIMEOUT,
)
from app.database import get_session
from app.models.appointment import Appointment
from app.models.closer import Closer
from app.services.notifications import notify_unassigned_appointments

logger = logging.getLogger('services.round_robin')


@contextmanager
def assignment_lock():
    """
    Hold the cross-process round-robin lock for the duration of the block.

    If Redis is unreachable the block still runs; the closer row lock is then
    the only serialization and fairness degrades to best effort.
    """
    lock = None
    acquired = False
    try:
        lock = extensions.redis_client.lock(
            ROUND_ROBIN_LOCK_KEY,
            timeout=ROUND_ROBIN_LOCK_TIMEOUT,
            blocking_timeout=ROUND_ROBIN_LOCK_TIMEOUT,
        )
        acquired = lock.acquire()
        if not acquired:
            logger.warning("Timed out waiting for round-robin lock — assigning without it")
    except RedisError as e:
        logger.warning("Round-robin lock unavailable (%s) — assigning without it", e)

    try:
        yield
    finally:
        if acquired:
            try:
                lock.release()
            except RedisError as e:
                logger.warning("Failed to release round-robin lock: %s", e)


def eligible_closers_query(session):
    """Active + approved closers, least loaded first, id as the stable tiebreak."""
    return session.query(Closer).filter(
        Closer.is_active.is_(True),
        Closer.is_approved.is_(True),
    ).order_by(Closer.total_calls.asc(), Closer.id.asc())


def pick_closer(session):
    """Lock and return the least-loaded eligible closer, or None."""
    return eligible_closers_query(session).with_for_update().first()


def assign_to(session, appointment, closer):
    """
    Attach appointment to closer and count the call. Does not commit.

    total_calls is incremented with a SQL expression so the write does not
    depend on the value this session read.
    """
    appointment.closer_id = closer.id
    if appointment.status in (APPOINTMENT_SCHEDULED, None):
        appointment.status = APPOINTMENT_CONFIRMED
    closer.total_calls = Closer.total_calls + 1
    session.flush()
    logger.info("Appointment assigned to closer %s", closer.id,
                extra={'appointment_id': appointment.id, 'closer_id': closer.id})


def assign_round_robin(session, appointment):
    """
    Assign appointment to the least-loaded eligible closer. Does not commit.

    Call inside assignment_lock() and commit before leaving the block.
    Returns the chosen Closer, or None when nobody is eligible.
    """
    closer = pick_closer(session)
    if closer is None:
        logger.warning("No active/approved closer — appointment left unassigned",
                       extra={'appointment_id': appointment.id})
        return None
    assign_to(session, appointment, closer)
    return closer


def reconcile_unassigned() -> dict:
    """
    Periodic / manual pass over appointments still waiting for a closer.

    Oldest first, one committed assignment per appointment so closer
    loads stay within one call of each other. Safe to run repeatedly.
    """
    session = get_session()
    try:
        pending_ids = [row.id for row in session.query(Appointment.id).filter(
            Appointment.closer_id.is_(None),
            Appointment.status.in_(ASSIGNABLE_STATUSES),
        ).order_by(Appointment.created_at.asc(), Appointment.id.asc()).all()]

        assigned = []
        for appointment_id in pending_ids:
            with assignment_lock():
                appointment = session.get(Appointment, appointment_id)
                if appointment is None or appointment.closer_id is not None:
                    continue
                closer = assign_round_robin(session, appointment)
                if closer is None:
                    session.rollback()
                    break
                session.commit()
                assigned.append({'appointment_id': appointment_id, 'closer_id': closer.id})

        still_unassigned = len(pending_ids) - len(assigned)
        logger.info("Reconciliation: %d assigned, %d still unassigned", len(assigned), still_unassigned)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if still_unassigned:
        notify_unassigned_appointments(still_unassigned)

    return {
        'assigned': assigned,
        'assigned_count': len(assigned),
        'still_unassigned': still_unassigned,
    }
