# /mediconnect/utils/time_util.py
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from mediconnect.errors import ValidationError

CENTS = Decimal('0.01')


def to_minutes(value: str) -> int:
    """'HH:MM' -> minutes since midnight."""
    hours, minutes = value.split(':')
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_clock(value) -> str:
    """Normalizes a wall-clock time to 'HH:MM'."""
    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    try:
        hours, minutes = str(value).strip().split(':')[:2]
        hours, minutes = int(hours), int(minutes)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return f"{hours:02d}:{minutes:02d}"


def parse_slot_time(value, slot_minutes: int) -> str:
    """Like parse_clock, but the time must start a slot of the configured width."""
    clock = parse_clock(value)
    if to_minutes(clock) % slot_minutes:
        raise ValidationError(f"Time {clock} does not start a {slot_minutes}-minute slot")
    return clock


def slot_datetime(day: date, clock: str) -> datetime:
    return datetime.combine(day, time(*map(int, clock.split(':'))))


def to_money(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount '{value}'")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount '{value}'")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
