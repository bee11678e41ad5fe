"""
Centralized configuration — env vars, ledger constants, settings defaults.
"""
import os
from decimal import Decimal


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Round-robin assignment ───────────────────────────────────────────────────
ROUND_ROBIN_LOCK_KEY = 'lock:round_robin'
ROUND_ROBIN_LOCK_TIMEOUT = int(os.getenv('ROUND_ROBIN_LOCK_TIMEOUT', '10'))

# ── Commission duplicate guard (seconds; 0 disables the time-window check) ──
DUPLICATE_GUARD_SECONDS = int(os.getenv('DUPLICATE_GUARD_SECONDS', '60'))

# ── Appointment outcomes ─────────────────────────────────────────────────────
OUTCOME_CONVERTED = 'converted'

OUTCOMES = [
    'converted',
    'not_interested',
    'needs_follow_up',
    'wrong_number',
    'no_answer',
    'callback_requested',
    'rescheduled',
]

# ── Appointment status values ────────────────────────────────────────────────
APPOINTMENT_SCHEDULED = 'scheduled'
APPOINTMENT_CONFIRMED = 'confirmed'
APPOINTMENT_COMPLETED = 'completed'

# Appointments in these statuses still need a closer
ASSIGNABLE_STATUSES = [APPOINTMENT_SCHEDULED, APPOINTMENT_CONFIRMED]

# ── Commission status / conversion type ──────────────────────────────────────
COMMISSION_HELD = 'held'
COMMISSION_AVAILABLE = 'available'
COMMISSION_PAID = 'paid'

COMMISSION_STATUSES = [COMMISSION_HELD, COMMISSION_AVAILABLE, COMMISSION_PAID]

CONVERSION_BOOKING = 'booking'
CONVERSION_SALE = 'sale'

# ── Payout status values ─────────────────────────────────────────────────────
PAYOUT_PENDING = 'pending'
PAYOUT_COMPLETED = 'completed'

# ── Quiz ─────────────────────────────────────────────────────────────────────
SESSION_IN_PROGRESS = 'in_progress'
SESSION_COMPLETED = 'completed'

ROLE_NAME = 'name'
ROLE_EMAIL = 'email'
ROLE_OTHER = 'other'

# ── Settings keys + documented defaults ──────────────────────────────────────
SETTING_COMMISSION_HOLD_DAYS = 'commission_hold_days'
SETTING_QUALIFICATION_THRESHOLD = 'qualification_threshold'
SETTING_MINIMUM_PAYOUT = 'minimum_payout'
SETTING_PAYOUT_SCHEDULE = 'payout_schedule'
SETTING_TERMINAL_OUTCOMES = 'terminal_outcomes'

SETTINGS_DEFAULTS = {
    SETTING_COMMISSION_HOLD_DAYS: 30,
    SETTING_QUALIFICATION_THRESHOLD: 17,
    SETTING_MINIMUM_PAYOUT: Decimal('50.00'),
    SETTING_PAYOUT_SCHEDULE: 'monthly-1st',
    SETTING_TERMINAL_OUTCOMES: ['converted', 'not_interested', 'wrong_number'],
}

PAYOUT_SCHEDULES = [
    'weekly',
    'biweekly',
    'monthly-1st',
    'monthly-15th',
    'monthly-last',
    'quarterly',
]

# Inclusive (min, max) bounds enforced on settings updates
SETTINGS_BOUNDS = {
    SETTING_COMMISSION_HOLD_DAYS: (0, 365),
    SETTING_QUALIFICATION_THRESHOLD: (1, 100),
    SETTING_MINIMUM_PAYOUT: (Decimal('0'), Decimal('10000')),
}
