from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Optional

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


def now_ms() -> int:
    """Server-side 'now' as epoch milliseconds (UTC)."""
    return int(time.time() * 1000)


def ms_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def datetime_to_ms(dt: datetime) -> int:
    """Naive datetimes are interpreted as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def to_utc_z(value: Optional[int]) -> Optional[str]:
    """
    Serializes epoch milliseconds to ISO-8601 with trailing 'Z'.
    """
    dt = ms_to_datetime(value)
    if dt is None:
        return None
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def elapsed_seconds(start_ms: int, end_ms: int) -> int:
    """Whole seconds between two epoch-ms instants (floored)."""
    return (end_ms - start_ms) // MS_PER_SECOND


def utc_day_bounds(at_ms: int) -> tuple[int, int]:
    """[start, end) of the UTC calendar day containing at_ms."""
    dt = ms_to_datetime(at_ms)
    start = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    return datetime_to_ms(start), datetime_to_ms(end)


def parse_timestamp(value) -> Optional[int]:
    """
    Accept epoch milliseconds (int/float/numeric string) or an ISO-8601 string.

    - None / "" -> None
    - "...Z" or "...+/-HH:MM" is converted to UTC
    - naive ISO strings are interpreted as UTC
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Invalid timestamp")
    if isinstance(value, (int, float)):
        return int(value)
    s = str(value).strip()
    if not s:
        return None
    if s.lstrip("-").isdigit():
        return int(s)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime_to_ms(datetime.fromisoformat(s))
