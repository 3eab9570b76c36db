"""Date/time value helpers for calendarcard_lite.

Wraps the raw start/end values found in calendar payloads into timezone-aware
datetimes in one display timezone, and provides the small set of day-level
operations the pipeline needs (truncate to midnight, shift by days, count
elapsed days, format).
"""

from __future__ import annotations

import datetime
import logging
import zoneinfo
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil import tz as dateutil_tz

logger = logging.getLogger(__name__)

DAY_FORMAT = "%Y-%m-%d"


def resolve_timezone(tz_name: Optional[str] = None) -> datetime.tzinfo:
    """Return a tzinfo for an IANA name, or the host's local zone when None.

    Raises:
        ValueError: If the name is not a known IANA timezone
    """
    if not tz_name:
        return dateutil_tz.tzlocal()
    try:
        return zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone {tz_name!r}") from e


def _unwrap(value: Any) -> tuple[Any, bool]:
    """Pull the concrete value out of a `{"date": ...}` / `{"dateTime": ...}` wrapper.

    Returns:
        Tuple of (value, is_date_only_hint)
    """
    if isinstance(value, dict):
        if value.get("dateTime"):
            return value["dateTime"], False
        if value.get("date"):
            return value["date"], True
        return None, False
    return value, False


def _is_date_only_string(value: str) -> bool:
    return len(value) == 10 and value[4] == "-" and value[7] == "-"


def parse_instant(value: Any, tz: datetime.tzinfo) -> tuple[datetime.datetime, bool]:
    """Resolve a raw calendar time value into an aware datetime in `tz`.

    Accepts `{"dateTime": iso}`, `{"date": "YYYY-MM-DD"}`, bare ISO strings and
    date/datetime objects. Naive values are read as wall time in `tz`; aware
    values are converted into `tz`; date-only values become midnight in `tz`.

    Args:
        value: Raw start or end value
        tz: Display timezone

    Returns:
        Tuple of (instant, is_date_only)

    Raises:
        ValueError: If the value is empty or cannot be parsed
    """
    raw, date_only = _unwrap(value)
    if raw is None or raw == "":
        raise ValueError("empty date/time value")

    if isinstance(raw, datetime.datetime):
        parsed = raw
    elif isinstance(raw, datetime.date):
        parsed = datetime.datetime.combine(raw, datetime.time.min)
        date_only = True
    elif isinstance(raw, str):
        text = raw.strip()
        if _is_date_only_string(text):
            date_only = True
        parsed = date_parser.isoparse(text)
    else:
        raise ValueError(f"unsupported date/time value {raw!r}")

    if date_only:
        return datetime.datetime.combine(parsed.date(), datetime.time.min, tzinfo=tz), True
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz), False
    return parsed.astimezone(tz), False


def start_of_day(dt: datetime.datetime) -> datetime.datetime:
    """Truncate to midnight, keeping the timezone."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def add_days(dt: datetime.datetime, days: int) -> datetime.datetime:
    """Shift by whole days in wall-clock time (DST does not move the time of day)."""
    return dt + datetime.timedelta(days=days)


def whole_days_between(start: datetime.datetime, end: datetime.datetime) -> int:
    """Whole days elapsed from start to end, floored.

    Both values must share a tzinfo so the difference is taken in wall-clock
    time; a DST day then still counts as one day.
    """
    return (end - start) // datetime.timedelta(days=1)


def is_midnight(dt: datetime.datetime) -> bool:
    return dt.hour == 0 and dt.minute == 0 and dt.second == 0 and dt.microsecond == 0


def format_day(dt: datetime.datetime) -> str:
    """Format the calendar date as YYYY-MM-DD."""
    return dt.strftime(DAY_FORMAT)


def format_api_instant(dt: datetime.datetime) -> str:
    """Format an instant for calendar API query parameters."""
    return dt.isoformat(timespec="seconds")
