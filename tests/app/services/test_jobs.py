"""Tests for the RQ job entry points."""
from datetime import datetime
from unittest.mock import patch, MagicMock

from app.services import jobs


class TestEnqueue:

    def test_reconciliation(self):
        queue = MagicMock()
        queue.enqueue.return_value.id = 'job-1'
        with patch.object(jobs, '_get_queue', return_value=queue):
            assert jobs.enqueue_reconciliation() == 'job-1'
        queue.enqueue.assert_called_once_with(jobs.run_reconciliation, job_timeout=jobs.JOB_TIMEOUT)

    def test_release_sweep_passes_now(self):
        queue = MagicMock()
        queue.enqueue.return_value.id = 'job-2'
        now = datetime(2024, 2, 1)
        with patch.object(jobs, '_get_queue', return_value=queue):
            assert jobs.enqueue_release_sweep(now) == 'job-2'
        queue.enqueue.assert_called_once_with(jobs.run_release_sweep, now, job_timeout=jobs.JOB_TIMEOUT)


class TestRun:

    def test_reconciliation_runs_both_passes(self):
        with patch.object(jobs, 'reconcile_unassigned', return_value={'assigned_count': 1}) as rec, \
             patch.object(jobs, 'resync_all', return_value={'corrected': []}) as resync:
            result = jobs.run_reconciliation()
        rec.assert_called_once()
        resync.assert_called_once()
        assert result == {'assigned_count': 1, 'counters': {'corrected': []}}

    def test_release_sweep_on_empty_ledger(self):
        result = jobs.run_release_sweep(now=datetime(2024, 2, 1))
        assert result['released_count'] == 0
