"""Raw calendar record → Event conversion for calendarcard_lite.

Handles the shapes returned by the Home Assistant calendar API (which proxies
Google, CalDAV and local calendars): `start`/`end` as `{"dateTime": ...}` or
`{"date": ...}` objects or bare strings, `summary` or `title`, and either an
`id` (Google) or a `uid` (CalDAV).
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from typing import Any, Optional

from calendarcard_lite.config_loader import EntityDescriptor
from calendarcard_lite.core.temporal import (
    add_days,
    is_midnight,
    parse_instant,
    start_of_day,
    whole_days_between,
)
from calendarcard_lite.exceptions import EventNormalizationError

from .models import Event, RawEvent

logger = logging.getLogger(__name__)

ADD_DAYS_KEY = "addDays"
DAYS_LONG_KEY = "daysLong"


def event_identity(raw: RawEvent) -> Optional[str]:
    """Stable identity of a raw record: `uid` if present, else `id`."""
    for key in ("uid", "id"):
        value = raw.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def _first_text(raw: RawEvent, *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if value:
            return str(value)
    return None


class EventNormalizer:
    """Builds canonical Events from raw source records."""

    def __init__(self, entities: Sequence[EntityDescriptor], tz: datetime.tzinfo):
        """Initialize normalizer.

        Args:
            entities: Configured calendar sources, used to resolve origin calendars
            tz: Display timezone every instant is expressed in
        """
        self.tz = tz
        self._entities_by_id = {}
        for entity in entities:
            # First descriptor wins when the same entity is listed twice
            self._entities_by_id.setdefault(entity.entity, entity)

    def resolve_origin(self, raw: RawEvent) -> Optional[EntityDescriptor]:
        """Match the record's source entity against the configured descriptors."""
        tag = raw.get("entity")
        if tag is None:
            return None
        try:
            entity_id = EntityDescriptor.coerce(tag).entity
        except ValueError:
            logger.debug("Unrecognised entity tag %r on event %r", tag, event_identity(raw))
            return None
        return self._entities_by_id.get(entity_id)

    def resolve_span(self, raw: RawEvent) -> tuple[datetime.datetime, datetime.datetime, bool]:
        """Resolve the unshifted start/end of a record.

        Returns:
            Tuple of (start, end, start_is_date_only)

        Raises:
            EventNormalizationError: If the start is missing or unparseable
        """
        start_value = raw.get("start", raw.get("dtstart"))
        end_value = raw.get("end", raw.get("dtend"))
        try:
            start, date_only = parse_instant(start_value, self.tz)
        except (ValueError, OverflowError) as e:
            raise EventNormalizationError(
                f"event {event_identity(raw)!r} has an invalid start {start_value!r}: {e}"
            ) from e

        if end_value in (None, "", {}):
            end = add_days(start, 1) if date_only else start
        else:
            try:
                end, _ = parse_instant(end_value, self.tz)
            except (ValueError, OverflowError) as e:
                raise EventNormalizationError(
                    f"event {event_identity(raw)!r} has an invalid end {end_value!r}: {e}"
                ) from e

        if end < start:
            logger.warning(
                "Event %r ends (%s) before it starts (%s); clamping end to start",
                event_identity(raw),
                end,
                start,
            )
            end = start
        return start, end, date_only

    @staticmethod
    def count_span_days(start: datetime.datetime, end: datetime.datetime) -> int:
        """Number of daily occurrences a span expands into.

        Whole elapsed days plus one. A pure all-day span (midnight to a later
        midnight) does not occupy the day its trailing midnight falls on.
        """
        days_long = whole_days_between(start, end) + 1
        if is_midnight(start) and is_midnight(end) and end > start:
            days_long -= 1
        return max(days_long, 1)

    def normalize(self, raw: RawEvent) -> Event:
        """Convert one raw record into an Event.

        Records stamped with `addDays`/`daysLong` become the single-day
        occurrence at that index of their span.

        Raises:
            EventNormalizationError: If the record has no identity or unusable times
        """
        event_id = event_identity(raw)
        if event_id is None:
            raise EventNormalizationError("event has neither uid nor id")

        start, end, date_only = self.resolve_span(raw)
        is_all_day = date_only or (is_midnight(start) and is_midnight(end))
        is_multi_day = start.date() != end.date()

        offset = raw.get(ADD_DAYS_KEY)
        days_long = raw.get(DAYS_LONG_KEY)
        if offset is not None:
            offset = int(offset)
            days_long = int(days_long) if days_long is not None else self.count_span_days(start, end)
            start, end = self._occurrence_bounds(start, end, offset, days_long)
        else:
            days_long = None

        return Event(
            id=event_id,
            title=_first_text(raw, "summary", "title", "message") or "",
            location=_first_text(raw, "location"),
            html_link=_first_text(raw, "htmlLink", "html_link"),
            description=_first_text(raw, "description"),
            start_date_time=start,
            end_date_time=end,
            is_all_day=is_all_day,
            is_multi_day=is_multi_day,
            origin_calendar=self.resolve_origin(raw),
            add_days=offset,
            days_long=days_long,
            raw_event=raw,
        )

    @staticmethod
    def _occurrence_bounds(
        start: datetime.datetime,
        end: datetime.datetime,
        offset: int,
        days_long: int,
    ) -> tuple[datetime.datetime, datetime.datetime]:
        """Start/end of day `offset` of a span.

        The first day keeps the original start time, the last day keeps the
        original end time, every other boundary is local midnight.
        """
        occurrence_start = start if offset == 0 else start_of_day(add_days(start, offset))
        if offset >= days_long - 1:
            occurrence_end = end
        else:
            occurrence_end = start_of_day(add_days(start, offset + 1))
        return occurrence_start, occurrence_end
