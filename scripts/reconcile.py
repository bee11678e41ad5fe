#!/usr/bin/env python3
"""
Reconciliation pass: assign appointments still waiting for a closer, then
resync every cached closer / affiliate counter from the underlying rows.

Usage:
    python scripts/reconcile.py
    python scripts/reconcile.py --enqueue   # hand off to an RQ worker
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import import_models
from app.logging_config import configure_logging
from app.services.jobs import enqueue_reconciliation, run_reconciliation


def main():
    parser = argparse.ArgumentParser(description='Assign waiting appointments and resync counters')
    parser.add_argument('--enqueue', action='store_true', help='Queue the pass on RQ instead of running it here')
    args = parser.parse_args()

    configure_logging()
    import_models()

    if args.enqueue:
        print(f'Queued reconciliation: job {enqueue_reconciliation()}')
        return

    result = run_reconciliation()
    print(f"Assigned {result['assigned_count']} appointment(s), {result['still_unassigned']} still unassigned")
    corrected = result['counters']['corrected']
    if corrected:
        print(f'Corrected counter drift on {len(corrected)} record(s):')
        for item in corrected:
            print(f"  {item['entity']} {item['id']}: {', '.join(item['fields'])}")


if __name__ == '__main__':
    main()
