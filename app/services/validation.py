"""
Input coercion shared by the ledger services — money, timestamps, emails.

All timestamps inside the engine are naive UTC datetimes.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.errors import ValidationError

CENTS = Decimal('0.01')


def utcnow():
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt):
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_timestamp(value, field, required=True):
    """Parse an ISO-8601 string (or datetime) into naive UTC."""
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required')
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))
    except ValueError:
        raise ValidationError(f'{field} must be an ISO-8601 timestamp')


def parse_money(value, field, required=False):
    """Parse a non-negative monetary amount into a Decimal rounded to cents."""
    if value is None or value == '':
        if required:
            raise ValidationError(f'{field} is required')
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number')
    if not amount.is_finite():
        raise ValidationError(f'{field} must be a number')
    if amount < 0:
        raise ValidationError(f'{field} must not be negative')
    return quantize_money(amount)


def quantize_money(amount):
    """Round a Decimal to cents, half-up."""
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def require_text(data, field):
    """Return data[field] stripped, raising ValidationError when blank."""
    value = data.get(field)
    if value is None or not str(value).strip():
        raise ValidationError(f'{field} is required')
    return str(value).strip()


def normalize_email(email):
    """Lowercase + trim. Returns '' for None."""
    if email is None:
        return ''
    return str(email).strip().lower()
