from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with millisecond precision and trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def business_today(tz_name: str, now: Optional[datetime] = None) -> date:
    """
    Calendar date in the store's timezone.

    Daily invoice counters roll over at local midnight, not UTC midnight.
    """
    now = now or utcnow()
    aware = now.replace(tzinfo=timezone.utc) if now.tzinfo is None else now
    return aware.astimezone(ZoneInfo(tz_name)).date()


def date_key(day: date) -> str:
    """DDMMYYYY form used inside invoice ids."""
    return day.strftime("%d%m%Y")


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD; raises ValueError on anything else."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def _day_bound(day: date, *, end: bool) -> datetime:
    start = datetime(day.year, day.month, day.day)
    if end:
        return start + timedelta(days=1) - timedelta(microseconds=1)
    return start


def parse_range_bound(value, *, end: bool) -> Optional[datetime]:
    """
    Normalize a history filter bound (datetime, date or string).

    Date-only values expand to the whole day: a start bound becomes 00:00:00,
    an end bound becomes 23:59:59.999999, both inclusive.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return _day_bound(value, end=end)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported bound: {value!r}")
    if not value.strip():
        return None
    s = value.strip()
    if len(s) == 10:
        return _day_bound(parse_date(s), end=end)
    return parse_iso_datetime(s)
