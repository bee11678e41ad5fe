"""
Structured logging configuration.

Called once from create_app() and from the cron scripts. Supports text
(human-readable) and JSON formats via LOG_FORMAT env var. LOG_LEVEL defaults
to INFO.

Ledger code attaches entity ids with `extra=`, e.g.

    logger.info("Commission released", extra={'conversion_id': cid})

JSON lines carry those ids as top-level keys so a log aggregator can filter
every event touching one appointment or affiliate.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone


# Ids that ledger code passes through `extra=`
CONTEXT_FIELDS = (
    'appointment_id',
    'affiliate_id',
    'closer_id',
    'conversion_id',
)


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):
    """Text formatter that appends any ledger ids as `key=value` pairs."""

    def format(self, record):
        line = super().format(record)
        pairs = [
            f'{field}={getattr(record, field)}'
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        ]
        if pairs:
            line = f"{line} [{' '.join(pairs)}]"
        return line


# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'sqlalchemy.engine',
    'rq.worker',
]


def configure_logging(app=None):
    """
    Set up root logger with format/level from env vars.

    Environment variables:
        LOG_LEVEL  — Python log level name (default: INFO)
        LOG_FORMAT — "text" (default) or "json"
    """
    level_name = os.getenv('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)

    log_format = os.getenv('LOG_FORMAT', 'text').lower()

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextTextFormatter(
            '[%(asctime)s] %(levelname)s %(name)s — %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
