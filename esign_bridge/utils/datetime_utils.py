"""
Timezone-aware datetime utilities.

JWT claims and provider labels are built from these helpers so every
timestamp in the service is UTC.
"""
from datetime import datetime, timezone, timedelta
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def epoch_seconds(dt: Optional[datetime] = None) -> int:
    """Whole seconds since the Unix epoch (JWT NumericDate)."""
    dt = dt or utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def from_epoch(seconds: int) -> datetime:
    """Inverse of epoch_seconds()."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def timestamp_label(dt: Optional[datetime] = None) -> str:
    """Compact sortable label, e.g. 20251019174502."""
    return (dt or utc_now()).strftime("%Y%m%d%H%M%S")


def is_expired(expires_at: Optional[datetime], leeway_seconds: int = 0) -> bool:
    """
    Check whether expires_at (minus leeway) has passed.

    Returns True for None so callers treat unknown expiry as expired.
    """
    if expires_at is None:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return utc_now() >= expires_at - timedelta(seconds=leeway_seconds)
