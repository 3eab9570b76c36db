"""Clock implementations for calendarcard_lite.

The pipeline reads "now" exactly once per run from a Clock and threads that
value through every stage, so a run never sees two different "now"s.
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Optional, Protocol

from dateutil import parser as date_parser

from .temporal import resolve_timezone

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "CALENDARCARD_TEST_TIME"


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime.datetime:
        """Return the current time as a timezone-aware datetime."""
        ...


class SystemClock:
    """Wall clock in a configured timezone, with test time override support."""

    def __init__(self, timezone: Optional[str] = None):
        """Initialize system clock.

        Args:
            timezone: IANA timezone name; None uses the host's local zone
        """
        self.tz = resolve_timezone(timezone)

    def now(self) -> datetime.datetime:
        """Return the current time in the configured timezone.

        Can be overridden for testing via CALENDARCARD_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2026-10-18T08:20:00-07:00")
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is None:
                    return dt.replace(tzinfo=self.tz)
                return dt.astimezone(self.tz)
            except ValueError as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(self.tz)


class FixedClock:
    """Clock frozen at one instant."""

    def __init__(self, now: datetime.datetime):
        if now.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._now = now

    def now(self) -> datetime.datetime:
        return self._now
