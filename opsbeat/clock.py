"""UTC time helpers shared by the store and the services."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime] = None) -> datetime:
    """Return `value` as an aware UTC datetime, defaulting to now."""
    if value is None:
        return utc_now()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Serialize a timestamp for storage.

    Always carries microseconds and an explicit offset so stored values compare
    correctly as strings.
    """
    return ensure_utc(value).isoformat(timespec="microseconds")


def utc_midnight(value: Optional[datetime] = None) -> datetime:
    """Start of the UTC day containing `value`."""
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)
