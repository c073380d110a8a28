"""
utils/time_utils.py

Purpose: Time helpers

- Timezone-aware UTC timestamps
- Statistics windows
- Timestamp formatting for reports
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

def utc_now() -> datetime:
    """
    Returns the current time as a timezone-aware UTC datetime.
    """
    return datetime.now(timezone.utc)

def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    """
    Returns the start of a trailing window of `days` days.
    """
    return (now or utc_now()) - timedelta(days=days)


def format_timestamp(dt: Optional[datetime], format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    return dt.strftime(format_str)
