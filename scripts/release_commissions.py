#!/usr/bin/env python3
"""
Release held commissions whose hold period has expired.

Cron entry point for the held → available sweep. Safe to run as often as you
like; already-released rows are never touched.

Usage:
    python scripts/release_commissions.py
    python scripts/release_commissions.py --now 2024-02-01T00:00:00
    python scripts/release_commissions.py --enqueue   # hand off to an RQ worker
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import import_models
from app.logging_config import configure_logging
from app.services.jobs import enqueue_release_sweep, run_release_sweep
from app.services.validation import parse_timestamp


def main():
    parser = argparse.ArgumentParser(description='Release held affiliate commissions')
    parser.add_argument('--now', help='ISO-8601 instant to evaluate hold_until against (default: current time)')
    parser.add_argument('--enqueue', action='store_true', help='Queue the sweep on RQ instead of running it here')
    args = parser.parse_args()

    configure_logging()
    import_models()
    now = parse_timestamp(args.now, 'now', required=False)

    if args.enqueue:
        print(f'Queued release sweep: job {enqueue_release_sweep(now)}')
        return

    result = run_release_sweep(now=now)
    print(f"Released {result['released_count']} commission(s) totalling ${result['released_amount']:,.2f}")


if __name__ == '__main__':
    main()
