from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_today() -> date:
    """Server-local calendar date. Shift numbering is scoped to this day."""
    return datetime.now().date()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a "YYYY-MM-DD" string.

    - None / "" -> None
    - anything else that is not a calendar date raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def local_day_start_utc(day: date) -> datetime:
    """Start of a server-local calendar day, as a naive UTC datetime."""
    local_start = datetime.combine(day, time.min).astimezone()
    return local_start.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_end_utc(day: date) -> datetime:
    """End (inclusive) of a server-local calendar day, as a naive UTC datetime."""
    local_end = datetime.combine(day, time.max).astimezone()
    return local_end.astimezone(timezone.utc).replace(tzinfo=None)


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Whole minutes from start to end, rounded, never negative."""
    if start is None or end is None:
        return 0
    return max(0, round((end - start).total_seconds() / 60))


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
