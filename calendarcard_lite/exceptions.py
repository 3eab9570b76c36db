"""Exception hierarchy for calendarcard_lite.

Specific exception types for the event pipeline so callers can tell a bad
configuration apart from a failing calendar source or a broken stage.
"""

from typing import Any, Optional


class CalendarCardError(Exception):
    """Base exception for all calendarcard_lite errors."""


class ConfigValidationError(CalendarCardError):
    """Configuration is missing, malformed or out of range.

    Raised when:
    - The config file cannot be found or does not hold a mapping
    - A numeric option is out of its allowed range
    - An entity descriptor has no entity id
    - An ignore expression is not a valid regular expression
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Any = None,
    ) -> None:
        self.message = message
        self.field_name = field_name
        self.field_value = field_value
        super().__init__(message)

    def __str__(self) -> str:
        if self.field_name:
            return f"{self.message} (field: {self.field_name})"
        return self.message


class SourceFetchError(CalendarCardError):
    """A calendar source could not be fetched.

    Raised by the Home Assistant client for transport errors, non-2xx
    responses and response bodies that are not a list of events.
    """

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.source_id = source_id
        self.status_code = status_code
        super().__init__(message)


class EventNormalizationError(CalendarCardError):
    """A raw event record cannot be turned into an Event.

    Soft error: the pipeline logs it and drops the record.
    """


class EventProcessingError(CalendarCardError):
    """A pipeline stage failed unexpectedly."""

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        self.errors = errors or []
        super().__init__(message)
