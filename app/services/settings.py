"""
Settings service — keyed configuration with documented defaults.

A missing or unreadable setting never fails the calling operation: it is
logged and the documented default from app.config.SETTINGS_DEFAULTS is used.
"""
import json
import logging
from decimal import Decimal, InvalidOperation

from app.config import (
    OUTCOMES,
    PAYOUT_SCHEDULES,
    SETTINGS_BOUNDS,
    SETTINGS_DEFAULTS,
    SETTING_COMMISSION_HOLD_DAYS,
    SETTING_MINIMUM_PAYOUT,
    SETTING_PAYOUT_SCHEDULE,
    SETTING_QUALIFICATION_THRESHOLD,
    SETTING_TERMINAL_OUTCOMES,
)
from app.database import get_session
from app.errors import ValidationError
from app.models.setting import Setting

logger = logging.getLogger('services.settings')

# API (camelCase) name → storage key
API_KEYS = {
    'commissionHoldDays': SETTING_COMMISSION_HOLD_DAYS,
    'qualificationThreshold': SETTING_QUALIFICATION_THRESHOLD,
    'minimumPayout': SETTING_MINIMUM_PAYOUT,
    'payoutSchedule': SETTING_PAYOUT_SCHEDULE,
    'terminalOutcomes': SETTING_TERMINAL_OUTCOMES,
}


# ── Parsing ──────────────────────────────────────────────────────────────────

def _parse_int(raw):
    return int(str(raw).strip())


def _parse_decimal(raw):
    return Decimal(str(raw).strip())


def _parse_outcomes(raw):
    values = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(values, list):
        raise ValueError('terminal_outcomes must be a JSON list')
    return [str(v) for v in values]


_PARSERS = {
    SETTING_COMMISSION_HOLD_DAYS: _parse_int,
    SETTING_QUALIFICATION_THRESHOLD: _parse_int,
    SETTING_MINIMUM_PAYOUT: _parse_decimal,
    SETTING_PAYOUT_SCHEDULE: lambda raw: str(raw).strip(),
    SETTING_TERMINAL_OUTCOMES: _parse_outcomes,
}


def _default(key):
    value = SETTINGS_DEFAULTS[key]
    return list(value) if isinstance(value, list) else value


# ── Reads ────────────────────────────────────────────────────────────────────

def load_settings(session) -> dict:
    """
    Read every known setting, falling back per key to its default.

    Never raises for missing or malformed values — logs a warning instead.
    """
    rows = {row.key: row.value for row in session.query(Setting).filter(
        Setting.key.in_(list(SETTINGS_DEFAULTS)),
    ).all()}

    result = {}
    for key in SETTINGS_DEFAULTS:
        raw = rows.get(key)
        if raw is None:
            result[key] = _default(key)
            continue
        try:
            result[key] = _PARSERS[key](raw)
        except (ValueError, TypeError, InvalidOperation):
            logger.warning("Setting %s has unreadable value %r — using default %r",
                           key, raw, SETTINGS_DEFAULTS[key])
            result[key] = _default(key)
    return result


def get_setting(session, key):
    """Single setting with default fallback."""
    return load_settings(session)[key]


def get_commission_hold_days(session) -> int:
    """Hold period in days; the documented default (30) when unset or invalid."""
    default = SETTINGS_DEFAULTS[SETTING_COMMISSION_HOLD_DAYS]
    row = session.get(Setting, SETTING_COMMISSION_HOLD_DAYS)
    if row is None:
        logger.warning("%s not configured — using default of %d days",
                       SETTING_COMMISSION_HOLD_DAYS, default)
        return default
    try:
        days = _parse_int(row.value)
    except ValueError:
        logger.warning("%s has unreadable value %r — using default of %d days",
                       SETTING_COMMISSION_HOLD_DAYS, row.value, default)
        return default
    if days < 0:
        logger.warning("%s is negative (%d) — using default of %d days",
                       SETTING_COMMISSION_HOLD_DAYS, days, default)
        return default
    return days


def is_terminal_outcome(outcome, settings) -> bool:
    """True when no further contact is expected after this outcome."""
    return outcome in settings.get(SETTING_TERMINAL_OUTCOMES, [])


def get_settings() -> dict:
    """Public read — settings keyed by their API names."""
    session = get_session()
    try:
        return to_api(load_settings(session))
    finally:
        session.close()


def to_api(settings) -> dict:
    out = {}
    for api_key, key in API_KEYS.items():
        value = settings[key]
        out[api_key] = float(value) if isinstance(value, Decimal) else value
    return out


# ── Writes ───────────────────────────────────────────────────────────────────

def _validate(key, value):
    """Validate one incoming value; returns its storage string."""
    if key in (SETTING_COMMISSION_HOLD_DAYS, SETTING_QUALIFICATION_THRESHOLD):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f'{key} must be an integer')
        low, high = SETTINGS_BOUNDS[key]
        if not low <= value <= high:
            raise ValidationError(f'{key} must be between {low} and {high}')
        return str(value)

    if key == SETTING_MINIMUM_PAYOUT:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f'{key} must be a number')
        low, high = SETTINGS_BOUNDS[key]
        if isinstance(value, bool) or not amount.is_finite() or not low <= amount <= high:
            raise ValidationError(f'{key} must be between {low} and {high}')
        return str(amount)

    if key == SETTING_PAYOUT_SCHEDULE:
        if value not in PAYOUT_SCHEDULES:
            raise ValidationError(f'{key} must be one of: {", ".join(PAYOUT_SCHEDULES)}')
        return value

    if key == SETTING_TERMINAL_OUTCOMES:
        if not isinstance(value, list):
            raise ValidationError(f'{key} must be a list')
        invalid = [v for v in value if v not in OUTCOMES]
        if invalid:
            raise ValidationError(f'Invalid terminal outcomes: {", ".join(map(str, invalid))}')
        return json.dumps(value)

    raise ValidationError(f'Unknown setting: {key}')


def update_settings(changes: dict) -> dict:
    """
    Validate and upsert settings given by API name.

    All values are validated before anything is written, so a single invalid
    value rejects the whole update.
    """
    if not isinstance(changes, dict) or not changes:
        raise ValidationError('No settings provided')

    unknown = [k for k in changes if k not in API_KEYS]
    if unknown:
        raise ValidationError(f'Unknown setting: {", ".join(unknown)}')

    encoded = {API_KEYS[k]: _validate(API_KEYS[k], v) for k, v in changes.items()}

    session = get_session()
    try:
        for key, value in encoded.items():
            row = session.get(Setting, key)
            if row is None:
                session.add(Setting(key=key, value=value))
            else:
                row.value = value
        session.commit()
        logger.info("Settings updated: %s", ', '.join(sorted(encoded)))
        return to_api(load_settings(session))
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
