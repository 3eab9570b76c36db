"""Multi-day event splitting for calendarcard_lite."""

from __future__ import annotations

import copy
import datetime
import logging

from .models import Event
from .normalizer import ADD_DAYS_KEY, DAYS_LONG_KEY, EventNormalizer

logger = logging.getLogger(__name__)


class MultiDayExpander:
    """Splits multi-day events into one occurrence per calendar day.

    Each occurrence is normalized afresh from a deep copy of the source
    record stamped with its day index, so occurrences never share state.
    Occurrences starting at or after the end of the display window are dropped.
    """

    def __init__(self, normalizer: EventNormalizer, window_end: datetime.datetime):
        """Initialize expander.

        Args:
            normalizer: Normalizer used to rebuild each occurrence
            window_end: Exclusive end of the display window (today + numberOfDays)
        """
        self.normalizer = normalizer
        self.window_end = window_end

    def days_long(self, event: Event) -> int:
        """Number of daily occurrences the event's full span expands into."""
        return self.normalizer.count_span_days(event.start_date_time, event.end_date_time)

    def expand(self, event: Event) -> list[Event]:
        """Return the in-window occurrences of a multi-day event.

        Events that are not multi-day are returned unchanged as a single item.
        """
        if not event.is_multi_day:
            return [event]

        days_long = self.days_long(event)
        occurrences: list[Event] = []
        for offset in range(days_long):
            copied = copy.deepcopy(event.raw_event)
            copied[ADD_DAYS_KEY] = offset
            copied[DAYS_LONG_KEY] = days_long
            occurrence = self.normalizer.normalize(copied)

            if occurrence.start_date_time < self.window_end:
                occurrences.append(occurrence)

        dropped = days_long - len(occurrences)
        logger.debug(
            "Split event %r into %d of %d daily occurrences (%d outside window)",
            event.id,
            len(occurrences),
            days_long,
            dropped,
        )
        return occurrences
