"""Datetime utilities for timezone-aware UTC timestamps.

SQLite hands DateTime columns back without tzinfo even when they were
written as UTC-aware values, so comparisons between stored instants and
``utc_now()`` go through ``ensure_utc`` first.

Usage:
    from src.utils.datetime_utils import utc_now, ensure_utc

    timestamp = utc_now()
    expired = ensure_utc(lot.expires_at) <= timestamp
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime.

    Naive values are assumed to already be in UTC (that is how they are
    stored). ``None`` passes through.

    Args:
        value: Datetime to normalize

    Returns:
        Timezone-aware datetime in UTC, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
