"""Concrete implementations of pipeline stages for event processing.

Each stage owns one step of the card's event processing and reports what it
did through a ProcessingResult. `create_event_pipeline()` wires them in the
order the card applies them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from calendarcard_lite.exceptions import EventNormalizationError

from .event_filter import EventFilterChain
from .models import DayGroup, Event, RawEvent
from .multi_day import MultiDayExpander
from .normalizer import EventNormalizer, event_identity
from .pipeline import EventProcessingPipeline, ProcessingContext, ProcessingResult

logger = logging.getLogger(__name__)


def deduplicate_raw_events(raw_events: Iterable[RawEvent]) -> tuple[list[RawEvent], int]:
    """Keep the first record for each identity (`uid`, else `id`).

    Records with neither `uid` nor `id` cannot be told apart and are dropped.

    Returns:
        Tuple of (unique_records, dropped_without_identity)
    """
    seen: set[str] = set()
    unique: list[RawEvent] = []
    missing_identity = 0
    for raw in raw_events:
        key = event_identity(raw)
        if key is None:
            missing_identity += 1
            continue
        if key in seen:
            continue
        seen.add(key)
        unique.append(raw)
    return unique, missing_identity


def group_events_by_day(events: Iterable[Event]) -> list[DayGroup]:
    """Bucket events by the calendar date they start on.

    Days appear in the order first encountered, events keep their input order.
    """
    buckets: dict[str, list[Event]] = {}
    for event in events:
        buckets.setdefault(event.day, []).append(event)
    return [DayGroup(day=day, events=day_events) for day, day_events in buckets.items()]


def apply_day_limit(groups: Iterable[DayGroup], events_limit: int) -> list[DayGroup]:
    """Enforce the events limit at whole-day granularity.

    Days are added while the running count is below the limit. The day that
    brings the count to or past the limit is kept in full; every later day
    is dropped.
    """
    kept: list[DayGroup] = []
    number_of_events = 0
    for group in groups:
        number_of_events += len(group.events)
        kept.append(group)
        if number_of_events >= events_limit:
            break
    return kept


class DeduplicationStage:
    """Remove duplicate raw records fetched from overlapping sources."""

    def __init__(self) -> None:
        self._name = "Deduplication"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.raw_events))

        unique, missing_identity = deduplicate_raw_events(context.raw_events)
        if missing_identity:
            result.add_warning(f"Dropped {missing_identity} events with neither uid nor id")

        context.raw_events = unique
        result.events_out = len(unique)
        result.events_filtered = result.events_in - result.events_out
        result.metadata["missing_identity"] = missing_identity

        if result.events_filtered > 0:
            logger.debug(
                "Deduplication: %d → %d events (%d removed)",
                result.events_in,
                result.events_out,
                result.events_filtered,
            )
        return result


class NormalizationStage:
    """Convert raw records into canonical Events.

    Records whose times cannot be resolved are dropped with a warning.
    """

    def __init__(self) -> None:
        self._name = "Normalization"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.raw_events))

        normalizer = EventNormalizer(context.config.entities, context.tz)
        context.extra["normalizer"] = normalizer

        events: list[Event] = []
        for raw in context.raw_events:
            try:
                events.append(normalizer.normalize(raw))
            except EventNormalizationError as e:
                result.add_warning(f"Skipping event: {e}")

        context.events = events
        result.events = events
        result.events_out = len(events)
        result.events_filtered = result.events_in - result.events_out
        return result


class EventFilterStage:
    """Apply the configured exclusion filters."""

    def __init__(self) -> None:
        self._name = "EventFilter"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.events))

        chain = EventFilterChain.from_config(context.config, context.now, context.today)
        if not chain.predicates:
            result.events = context.events
            result.events_out = len(context.events)
            return result

        logger.debug("Applying event filters: %s", ", ".join(chain.names))
        result.metadata["filters"] = chain.names
        kept, excluded = chain.apply(context.events)
        context.events = kept
        result.events = kept
        result.events_out = len(kept)
        result.events_filtered = result.events_in - result.events_out
        result.metadata["excluded_by"] = dict(excluded)

        if result.events_filtered > 0:
            logger.debug(
                "Event filter: %d → %d events (%s)",
                result.events_in,
                result.events_out,
                ", ".join(f"{name}={count}" for name, count in excluded.items()),
            )
        return result


class MultiDayExpansionStage:
    """Split multi-day events into per-day occurrences when enabled."""

    def __init__(self) -> None:
        self._name = "MultiDayExpansion"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.events))

        if not context.config.show_multi_day:
            result.events = context.events
            result.events_out = len(context.events)
            return result

        normalizer = context.extra.get("normalizer")
        if normalizer is None:
            normalizer = EventNormalizer(context.config.entities, context.tz)
        expander = MultiDayExpander(normalizer, context.window_end)

        expanded: list[Event] = []
        split_count = 0
        for event in context.events:
            if event.is_multi_day:
                split_count += 1
            expanded.extend(expander.expand(event))

        context.events = expanded
        result.events = expanded
        result.events_out = len(expanded)
        result.metadata["split_events"] = split_count

        if split_count:
            logger.debug(
                "Multi-day expansion: split %d events, %d → %d events",
                split_count,
                result.events_in,
                result.events_out,
            )
        return result


class SortStage:
    """Sort events by start time, keeping input order for equal starts."""

    def __init__(self) -> None:
        self._name = "Sort"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.events))

        # sorted() is stable
        context.events = sorted(context.events, key=lambda e: e.start_date_time)

        result.events = context.events
        result.events_out = len(context.events)
        return result


class DayGroupingStage:
    """Group sorted events into DayGroups."""

    def __init__(self) -> None:
        self._name = "DayGrouping"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        result = ProcessingResult(stage_name=self.name, events_in=len(context.events))

        context.day_groups = group_events_by_day(context.events)

        result.day_groups = context.day_groups
        result.events_out = len(context.events)
        result.metadata["days"] = len(context.day_groups)
        return result


class EventLimitStage:
    """Cap the grouped result by the events limit, one whole day at a time."""

    def __init__(self) -> None:
        self._name = "EventLimit"

    @property
    def name(self) -> str:
        """Stage name for logging."""
        return self._name

    def process(self, context: ProcessingContext) -> ProcessingResult:
        groups_in = context.day_groups
        result = ProcessingResult(
            stage_name=self.name,
            events_in=sum(len(group.events) for group in groups_in),
        )

        limit = context.config.events_limit
        context.day_groups = apply_day_limit(groups_in, limit)

        result.day_groups = context.day_groups
        result.events_out = sum(len(group.events) for group in context.day_groups)
        result.events_filtered = result.events_in - result.events_out
        result.metadata["days_dropped"] = len(groups_in) - len(context.day_groups)

        if result.events_filtered > 0:
            logger.debug(
                "Event limit: %d → %d events, %d days dropped (limit=%d)",
                result.events_in,
                result.events_out,
                result.metadata["days_dropped"],
                limit,
            )
        return result


def create_event_pipeline() -> EventProcessingPipeline:
    """Create the card's processing pipeline.

    Stages, in order: deduplicate, normalize, filter, split multi-day events,
    sort, group by day, enforce the events limit.
    """
    pipeline = EventProcessingPipeline()
    pipeline.add_stage(DeduplicationStage())
    pipeline.add_stage(NormalizationStage())
    pipeline.add_stage(EventFilterStage())
    pipeline.add_stage(MultiDayExpansionStage())
    pipeline.add_stage(SortStage())
    pipeline.add_stage(DayGroupingStage())
    pipeline.add_stage(EventLimitStage())
    return pipeline
