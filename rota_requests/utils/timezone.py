"""Clock and timezone helpers. Deadlines are stored as naive UTC datetimes."""

import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo


@lru_cache(maxsize=8)
def _get_tz(tz_name):
    return ZoneInfo(tz_name)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, matching stored deadlines."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_local_time(dt, fmt='%d/%m/%Y %H:%M', tz_name='Europe/Madrid'):
    """Convert a naive UTC datetime to local time and format it.

    Args:
        dt: A naive datetime assumed to be UTC, or None.
        fmt: strftime format string.
        tz_name: IANA timezone name.

    Returns:
        Formatted local time string, or '' if dt is None.
    """
    if dt is None:
        return ''
    local_dt = dt.replace(tzinfo=timezone.utc).astimezone(_get_tz(tz_name))
    formatted = local_dt.strftime(fmt)
    # Strip leading zeros from day and month only
    formatted = re.sub(r'(?<![:\d])0(\d)(?=/)', r'\1', formatted)
    return formatted
