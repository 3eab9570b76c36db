"""Fetch orchestration and the card's event entry points for calendarcard_lite."""

from __future__ import annotations

import asyncio
import datetime
import inspect
import logging
from collections.abc import Awaitable, Iterable, Sequence
from typing import Callable, Optional, Union

from .config_loader import CardConfig, EntityDescriptor
from .core.clock import Clock, SystemClock
from .core.temporal import add_days, format_api_instant, start_of_day
from .domain.models import AllEventsResult, DayGroup, FailedSource, FetchOutcome, RawEvent
from .domain.pipeline import ProcessingContext
from .domain.pipeline_stages import create_event_pipeline
from .exceptions import EventProcessingError, SourceFetchError

logger = logging.getLogger(__name__)

# fetch(source_id, start_iso, end_iso) -> raw events; may be sync or async
CalendarFetch = Callable[
    [str, str, str],
    Union[Sequence[RawEvent], Awaitable[Sequence[RawEvent]]],
]


class FetchOrchestrator:
    """Fetches every configured calendar source concurrently.

    One call per source, all started at once, joined only after every call
    has settled. A failing source is recorded and never affects the others.
    No retries and no timeout are applied here; both belong to the fetch
    callable.
    """

    def __init__(self, fetch_calendar_events: CalendarFetch):
        """Initialize fetch orchestrator.

        Args:
            fetch_calendar_events: Callable fetching one source's raw events
                for a date window
        """
        self.fetch_calendar_events = fetch_calendar_events

    async def fetch_source(
        self,
        entity: EntityDescriptor,
        start: str,
        end: str,
    ) -> list[RawEvent]:
        """Fetch one source and tag each raw event with its entity descriptor.

        Raises:
            SourceFetchError: If the source returns something other than a list of records
        """
        if inspect.iscoroutinefunction(self.fetch_calendar_events):
            result = await self.fetch_calendar_events(entity.entity, start, end)
        else:
            # Blocking fetches run in a worker thread, off the event loop
            result = await asyncio.to_thread(self.fetch_calendar_events, entity.entity, start, end)
            if inspect.isawaitable(result):
                result = await result

        if result is None or isinstance(result, (str, bytes, dict)):
            raise SourceFetchError(
                f"Calendar {entity.entity!r} returned {type(result).__name__}, expected a list",
                source_id=entity.entity,
            )

        tagged: list[RawEvent] = []
        for raw in result:
            if not isinstance(raw, dict):
                logger.warning("Calendar %r returned a non-mapping event %r; skipping", entity.entity, raw)
                continue
            # Copy so the caller's payload is never mutated
            tagged.append({**raw, "entity": entity})
        return tagged

    async def fetch_all_sources(
        self,
        entities: Sequence[EntityDescriptor],
        window_start: datetime.datetime,
        window_end: datetime.datetime,
    ) -> FetchOutcome:
        """Fetch all sources for the window and merge their results.

        Events are merged in configured source order.

        Args:
            entities: Configured calendar sources
            window_start: Start of the fetch window (start of today)
            window_end: End of the fetch window (today + numberOfDays)

        Returns:
            FetchOutcome with tagged raw events and per-source failures
        """
        outcome = FetchOutcome()
        if not entities:
            logger.warning("No calendar entities configured, skipping fetch")
            return outcome

        start = format_api_instant(window_start)
        end = format_api_instant(window_end)
        logger.debug("Fetching %d calendars for %s → %s", len(entities), start, end)

        fetch_tasks = [
            asyncio.create_task(self.fetch_source(entity, start, end)) for entity in entities
        ]
        # Wait for every source to settle, successes and failures alike
        fetch_results = await asyncio.gather(*fetch_tasks, return_exceptions=True)

        for entity, result in zip(entities, fetch_results):
            if isinstance(result, Exception):
                logger.warning("Calendar %r failed: %s", entity.display_name, result)
                outcome.failed_events.append(FailedSource(name=entity.display_name, error=result))
                continue
            if isinstance(result, BaseException):
                # Cancellation is not a source failure; let it reach the caller
                raise result
            logger.debug("Calendar %r returned %d events", entity.entity, len(result))
            outcome.events.extend(result)

        logger.debug(
            "Fetched %d raw events from %d calendars (%d failed)",
            len(outcome.events),
            len(entities),
            len(outcome.failed_events),
        )
        return outcome


def _run_clock(config: CardConfig, clock: Optional[Clock]) -> Clock:
    return clock if clock is not None else SystemClock(config.timezone)


def process_events(
    raw_events: Iterable[RawEvent],
    config: CardConfig,
    now: datetime.datetime,
) -> list[DayGroup]:
    """Run the synchronous part of the pipeline over already-fetched raw events.

    Args:
        raw_events: Raw records, each optionally tagged with an `entity`
        config: Card configuration
        now: The run's current time (timezone-aware; its zone is the display zone)

    Returns:
        List of DayGroup

    Raises:
        EventProcessingError: If a stage fails unexpectedly
    """
    context = ProcessingContext(config=config, now=now, raw_events=list(raw_events))
    result = create_event_pipeline().process(context)
    if not result.success:
        raise EventProcessingError(
            f"Event processing failed: {'; '.join(result.errors)}", errors=result.errors
        )
    return result.day_groups


async def get_all_events(
    config: CardConfig,
    fetch: CalendarFetch,
    clock: Optional[Clock] = None,
) -> AllEventsResult:
    """Fetch every configured calendar and return the grouped, limited result.

    Args:
        config: Card configuration
        fetch: Inbound capability fetch(source_id, start_iso, end_iso) -> raw events
        clock: Time source; defaults to the system clock in the configured timezone

    Returns:
        AllEventsResult with day groups and per-source failures
    """
    now = _run_clock(config, clock).now()
    today = start_of_day(now)
    window_end = add_days(today, config.number_of_days)

    outcome = await FetchOrchestrator(fetch).fetch_all_sources(config.entities, today, window_end)
    day_groups = process_events(outcome.events, config, now)

    result = AllEventsResult(events=day_groups, failed_events=outcome.failed_events)
    logger.info(
        "Calendar refresh complete - %d events over %d days (%d/%d calendars failed)",
        result.event_count,
        len(result.events),
        len(result.failed_events),
        len(config.entities),
    )
    return result
