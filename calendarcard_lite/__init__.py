"""calendarcard_lite - calendar event processing for an agenda card.

Fetches raw events from one or more calendar sources, deduplicates and
filters them, optionally splits multi-day events per day, groups them by
calendar day and caps the result by a display limit.
"""

__version__ = "0.1.0"

from .config_loader import CardConfig, EntityDescriptor, load_config
from .core.clock import Clock, FixedClock, SystemClock
from .domain.models import AllEventsResult, DayGroup, Event, FailedSource
from .exceptions import (
    CalendarCardError,
    ConfigValidationError,
    EventNormalizationError,
    EventProcessingError,
    SourceFetchError,
)
from .fetch_orchestrator import FetchOrchestrator, get_all_events, process_events

__all__ = [
    "AllEventsResult",
    "CalendarCardError",
    "CardConfig",
    "Clock",
    "ConfigValidationError",
    "DayGroup",
    "EntityDescriptor",
    "Event",
    "EventNormalizationError",
    "EventProcessingError",
    "FailedSource",
    "FetchOrchestrator",
    "FixedClock",
    "SourceFetchError",
    "SystemClock",
    "get_all_events",
    "load_config",
    "process_events",
]
