from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional


INTERVAL_DAY = "day"
INTERVAL_WEEK = "week"
INTERVAL_MONTH = "month"
INTERVAL_YEAR = "year"

VALID_INTERVALS = [INTERVAL_DAY, INTERVAL_WEEK, INTERVAL_MONTH, INTERVAL_YEAR]


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_date_only(value: str) -> bool:
    return len(value) == 10 and value[4] == "-" and value[7] == "-"


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" -> midnight, or the last microsecond of that day when end_of_day=True
      (so a date-only endDate is inclusive of the whole day)
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if _is_date_only(s):
        day = date.fromisoformat(s)
        dt = datetime(day.year, day.month, day.day)
        if end_of_day:
            dt = dt + timedelta(days=1) - timedelta(microseconds=1)
        return dt

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def resolve_range(
    start: Optional[datetime], end: Optional[datetime], *, default_days: int = 30
) -> tuple[datetime, datetime]:
    """Fill in a missing time-series range: end defaults to now, start to `default_days` before end."""
    end = end or utcnow()
    start = start or (end - timedelta(days=default_days))
    if start > end:
        raise ValueError("startDate must be before endDate")
    return start, end


def bucket_start(dt: datetime, interval: str) -> datetime:
    """Floor a datetime to the start of its bucket. Weeks start on Monday."""
    day = datetime(dt.year, dt.month, dt.day)
    if interval == INTERVAL_DAY:
        return day
    if interval == INTERVAL_WEEK:
        return day - timedelta(days=day.weekday())
    if interval == INTERVAL_MONTH:
        return datetime(dt.year, dt.month, 1)
    if interval == INTERVAL_YEAR:
        return datetime(dt.year, 1, 1)
    raise ValueError(f"interval must be one of {VALID_INTERVALS}")


def next_bucket(start: datetime, interval: str) -> datetime:
    if interval == INTERVAL_DAY:
        return start + timedelta(days=1)
    if interval == INTERVAL_WEEK:
        return start + timedelta(days=7)
    if interval == INTERVAL_MONTH:
        if start.month == 12:
            return datetime(start.year + 1, 1, 1)
        return datetime(start.year, start.month + 1, 1)
    if interval == INTERVAL_YEAR:
        return datetime(start.year + 1, 1, 1)
    raise ValueError(f"interval must be one of {VALID_INTERVALS}")


def iter_buckets(start: datetime, end: datetime, interval: str) -> Iterator[datetime]:
    """Yield every bucket start from the bucket containing `start` up to the one containing `end`."""
    current = bucket_start(start, interval)
    last = bucket_start(end, interval)
    while current <= last:
        yield current
        current = next_bucket(current, interval)
