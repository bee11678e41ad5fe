"""
Background jobs — RQ entry points for the periodic ledger passes.

The queue is created lazily so importing this module never touches Redis.
Cron invokes the same functions directly through scripts/.
"""
import logging

from app.services.counters import resync_all
from app.services.ledger import release_held_commissions
from app.services.round_robin import reconcile_unassigned

logger = logging.getLogger('services.jobs')

JOB_TIMEOUT = 600

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        import redis
        from rq import Queue
        from app.config import REDIS_URL
        # RQ payloads are pickled bytes; no decode_responses here.
        _queue = Queue(connection=redis.from_url(REDIS_URL))
    return _queue


def run_reconciliation() -> dict:
    """Assign waiting appointments, then resync every cached counter."""
    result = reconcile_unassigned()
    result['counters'] = resync_all()
    return result


def run_release_sweep(now=None) -> dict:
    return release_held_commissions(now=now)


def enqueue_reconciliation() -> str:
    job = _get_queue().enqueue(run_reconciliation, job_timeout=JOB_TIMEOUT)
    logger.info("Reconciliation job %s enqueued", job.id)
    return job.id


def enqueue_release_sweep(now=None) -> str:
    job = _get_queue().enqueue(run_release_sweep, now, job_timeout=JOB_TIMEOUT)
    logger.info("Release sweep job %s enqueued", job.id)
    return job.id
