"""Shared helpers for timestamps and money values."""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

HOURS_QUANTUM = Decimal("0.01")


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass through a datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Cannot parse datetime from {type(value).__name__}")


def parse_date(value: Any) -> Optional[date]:
    """Parse a date from an ISO string, date or datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # Accept full timestamps as well as bare dates
        if "T" in value or " " in value:
            return parse_datetime(value).date()
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {type(value).__name__}")


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """Convert ints, floats and numeric strings to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"{field_name} must be numeric, got {value!r}")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"{field_name} must be numeric")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite")
    return result


def optional_decimal(value: Any, field_name: str = "amount") -> Optional[Decimal]:
    if value is None:
        return None
    return to_decimal(value, field_name)


def hours_between(start: datetime, end: datetime) -> Decimal:
    """Length of [start, end] in hours, rounded to two places."""
    seconds = Decimal(str((end - start).total_seconds()))
    return (seconds / Decimal(3600)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def isoformat_or_none(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def decimal_str_or_none(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None
