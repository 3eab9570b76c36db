"""Configured event exclusion filters for calendarcard_lite."""

from __future__ import annotations

import datetime
import logging
import re
from collections import Counter
from typing import Optional, Protocol

from calendarcard_lite.config_loader import CardConfig

from .models import Event

logger = logging.getLogger(__name__)


class EventPredicate(Protocol):
    """One exclusion rule."""

    name: str

    def excludes(self, event: Event) -> bool:
        """Return True if the event must be hidden."""
        ...


class PastEventFilter:
    """Hide events that ended before now."""

    name = "hide_past_events"

    def __init__(self, now: datetime.datetime):
        self.now = now

    def excludes(self, event: Event) -> bool:
        return event.end_date_time < self.now


class StartFromTodayFilter:
    """Hide events that ended before the start of today."""

    name = "start_from_today"

    def __init__(self, today: datetime.datetime):
        self.today = today

    def excludes(self, event: Event) -> bool:
        return self.today > event.end_date_time


class PatternFilter:
    """Hide events whose field matches a case-insensitive regular expression.

    Events without a value for the field are never excluded.
    """

    def __init__(self, name: str, attribute: str, expression: str):
        self.name = name
        self.attribute = attribute
        self.pattern = re.compile(expression, re.IGNORECASE)

    def excludes(self, event: Event) -> bool:
        value: Optional[str] = getattr(event, self.attribute)
        if not value:
            return False
        return self.pattern.search(value) is not None


class EventFilterChain:
    """Applies the enabled filters in order, stopping at the first exclusion.

    Order: past events, start-from-today, title expression, location expression.
    Disabled filters (false flag, empty expression) are not part of the chain.
    """

    def __init__(self, predicates: list[EventPredicate]):
        self.predicates = predicates

    @classmethod
    def from_config(
        cls,
        config: CardConfig,
        now: datetime.datetime,
        today: datetime.datetime,
    ) -> EventFilterChain:
        """Build the chain for one run.

        Args:
            config: Card configuration
            now: The run's current time
            today: Start of the run's current day
        """
        predicates: list[EventPredicate] = []
        if config.hide_past_events:
            predicates.append(PastEventFilter(now))
        if config.start_from_today:
            predicates.append(StartFromTodayFilter(today))
        if config.ignore_events_expression:
            predicates.append(
                PatternFilter("ignore_events_expression", "title", config.ignore_events_expression)
            )
        if config.ignore_events_by_location_expression:
            predicates.append(
                PatternFilter(
                    "ignore_events_by_location_expression",
                    "location",
                    config.ignore_events_by_location_expression,
                )
            )
        return cls(predicates)

    @property
    def names(self) -> list[str]:
        """Names of the active filters, in evaluation order."""
        return [predicate.name for predicate in self.predicates]

    def excluded_by(self, event: Event) -> Optional[str]:
        """Name of the first filter that excludes the event, or None if it is kept."""
        for predicate in self.predicates:
            if predicate.excludes(event):
                return predicate.name
        return None

    def apply(self, events: list[Event]) -> tuple[list[Event], Counter[str]]:
        """Filter events.

        Returns:
            Tuple of (kept_events, exclusion_counts_by_filter_name)
        """
        kept: list[Event] = []
        excluded: Counter[str] = Counter()
        for event in events:
            reason = self.excluded_by(event)
            if reason is None:
                kept.append(event)
            else:
                excluded[reason] += 1
                logger.debug("Event %r (%r) excluded by %s", event.id, event.title, reason)
        return kept, excluded
