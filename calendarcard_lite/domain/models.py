"""Data models for calendar event processing - CalendarCard Lite version."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from calendarcard_lite.config_loader import EntityDescriptor
from calendarcard_lite.core.temporal import format_day

# Raw records are opaque source payloads (Home Assistant / CalDAV / Google shaped)
RawEvent = dict[str, Any]


class Event(BaseModel):
    """Canonical calendar event produced by the normalizer.

    Occurrences produced by multi-day expansion carry `add_days` (which day of
    the span this is, zero based) and `days_long` (length of the span).
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Stable event id (uid, else id)")
    title: str = Field(default="", description="Event title/summary")
    location: Optional[str] = Field(default=None, description="Event location")
    html_link: Optional[str] = Field(default=None, description="Link to the event")
    description: Optional[str] = Field(default=None, description="Event description")

    start_date_time: datetime = Field(..., description="Resolved start instant")
    end_date_time: datetime = Field(..., description="Resolved end instant")
    is_all_day: bool = Field(default=False, description="All-day event flag")
    is_multi_day: bool = Field(default=False, description="Span crosses a date boundary")

    origin_calendar: Optional[EntityDescriptor] = Field(
        default=None, description="Configured source this event came from"
    )

    add_days: Optional[int] = Field(default=None, description="Day index within a split span")
    days_long: Optional[int] = Field(default=None, description="Number of days in a split span")

    raw_event: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)

    @property
    def day(self) -> str:
        """Calendar date (YYYY-MM-DD) the event starts on."""
        return format_day(self.start_date_time)

    @property
    def is_occurrence(self) -> bool:
        """True for a single-day occurrence split from a multi-day event."""
        return self.add_days is not None

    @field_serializer("start_date_time", "end_date_time")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


class DayGroup(BaseModel):
    """Events starting on one calendar day, in start order."""

    model_config = ConfigDict(frozen=True)

    day: str = Field(..., description="YYYY-MM-DD")
    events: list[Event] = Field(default_factory=list)


class FailedSource(BaseModel):
    """A calendar source whose fetch failed during a run."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Display name of the failed source")
    error: Exception = Field(..., description="Underlying error")

    @field_serializer("error")
    def serialize_error(self, error: Exception) -> str:
        return f"{type(error).__name__}: {error}"


class AllEventsResult(BaseModel):
    """Final output of one run: grouped events plus per-source failures."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    events: list[DayGroup] = Field(default_factory=list)
    failed_events: list[FailedSource] = Field(default_factory=list)

    @property
    def event_count(self) -> int:
        return sum(len(group.events) for group in self.events)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump in the card's camelCase JSON shape."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass
class FetchOutcome:
    """Merged result of fetching every configured source."""

    events: list[RawEvent] = field(default_factory=list)
    failed_events: list[FailedSource] = field(default_factory=list)
