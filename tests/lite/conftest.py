from collections.abc import Generator
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import pytest

from calendarcard_lite.config_loader import CardConfig
from calendarcard_lite.core.clock import FixedClock


@pytest.fixture
def test_timezone() -> ZoneInfo:
    """Return a deterministic display timezone for tests.

    Using a fixed timezone avoids host-local timezone differences which can
    make day-boundary tests flaky.
    """
    return ZoneInfo("America/Los_Angeles")


@pytest.fixture
def fixed_now(test_timezone: ZoneInfo) -> datetime:
    """Sunday 2026-10-18 09:30 in the test timezone."""
    return datetime(2026, 10, 18, 9, 30, tzinfo=test_timezone)


@pytest.fixture
def fixed_clock(fixed_now: datetime) -> FixedClock:
    return FixedClock(fixed_now)


@pytest.fixture
def make_config() -> Callable[..., CardConfig]:
    """Factory for CardConfig with a single work calendar by default.

    Keyword arguments use the card's camelCase keys and override defaults.
    """

    def _make(**overrides: Any) -> CardConfig:
        data: dict[str, Any] = {"entities": ["calendar.work"]}
        data.update(overrides)
        return CardConfig.from_dict(data)

    return _make


@pytest.fixture
def make_raw_event() -> Callable[..., dict[str, Any]]:
    """Factory for Home Assistant shaped raw events.

    Timed events use `{"dateTime": ...}` wrappers, all-day events
    (`all_day=True`) use `{"date": ...}` wrappers.
    """

    def _make(
        event_id: Optional[str] = "evt-1",
        summary: Optional[str] = "Meeting",
        start: str = "2026-10-18T10:00:00",
        end: Optional[str] = "2026-10-18T11:00:00",
        *,
        uid: Optional[str] = None,
        location: Optional[str] = None,
        entity: Any = "calendar.work",
        all_day: bool = False,
        **extra: Any,
    ) -> dict[str, Any]:
        key = "date" if all_day else "dateTime"
        raw: dict[str, Any] = {"start": {key: start}}
        if end is not None:
            raw["end"] = {key: end}
        if event_id is not None:
            raw["id"] = event_id
        if uid is not None:
            raw["uid"] = uid
        if summary is not None:
            raw["summary"] = summary
        if location is not None:
            raw["location"] = location
        if entity is not None:
            raw["entity"] = entity
        raw.update(extra)
        return raw

    return _make


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure environment overrides do not leak between tests."""
    for name in (
        "CALENDARCARD_TEST_TIME",
        "CALENDARCARD_CONFIG",
        "CALENDARCARD_DEBUG",
        "CALENDARCARD_LOG_LEVEL",
        "HASS_URL",
        "HASS_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
