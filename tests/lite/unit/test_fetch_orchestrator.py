"""Unit tests for calendarcard_lite.fetch_orchestrator."""

import asyncio
import datetime
import time

import pytest

from calendarcard_lite.config_loader import EntityDescriptor
from calendarcard_lite.exceptions import SourceFetchError
from calendarcard_lite.fetch_orchestrator import FetchOrchestrator

pytestmark = pytest.mark.unit


@pytest.fixture
def window(test_timezone):
    start = datetime.datetime(2026, 10, 18, tzinfo=test_timezone)
    return start, start + datetime.timedelta(days=7)


@pytest.fixture
def entities():
    return [
        EntityDescriptor.coerce("calendar.work"),
        EntityDescriptor.coerce({"entity": "calendar.home", "name": "Home"}),
    ]


class TestFetchSource:
    """Tests for FetchOrchestrator.fetch_source."""

    async def test_tags_events_without_mutating_payload(self, make_raw_event):
        payload = [make_raw_event("a", entity=None), make_raw_event("b", entity=None)]
        descriptor = EntityDescriptor.coerce("calendar.work")

        async def fetch(source_id, start, end):
            return payload

        tagged = await FetchOrchestrator(fetch).fetch_source(descriptor, "s", "e")

        assert [raw["entity"] for raw in tagged] == [descriptor, descriptor]
        assert all("entity" not in raw for raw in payload)

    async def test_sync_fetch_is_supported(self, make_raw_event):
        def fetch(source_id, start, end):
            return [make_raw_event("a", entity=None)]

        tagged = await FetchOrchestrator(fetch).fetch_source(
            EntityDescriptor.coerce("calendar.work"), "s", "e"
        )

        assert [raw["id"] for raw in tagged] == ["a"]

    @pytest.mark.parametrize("payload", [None, "oops", {"id": "a"}])
    async def test_non_list_result_raises(self, payload):
        async def fetch(source_id, start, end):
            return payload

        with pytest.raises(SourceFetchError) as exc_info:
            await FetchOrchestrator(fetch).fetch_source(
                EntityDescriptor.coerce("calendar.work"), "s", "e"
            )
        assert exc_info.value.source_id == "calendar.work"

    async def test_non_mapping_items_are_skipped(self, make_raw_event, caplog):
        async def fetch(source_id, start, end):
            return [make_raw_event("a", entity=None), "junk", 42]

        tagged = await FetchOrchestrator(fetch).fetch_source(
            EntityDescriptor.coerce("calendar.work"), "s", "e"
        )

        assert [raw["id"] for raw in tagged] == ["a"]
        assert "non-mapping event" in caplog.text


class TestFetchAllSources:
    """Tests for FetchOrchestrator.fetch_all_sources."""

    async def test_no_entities_returns_empty_outcome(self, window):
        calls = []

        async def fetch(source_id, start, end):
            calls.append(source_id)
            return []

        outcome = await FetchOrchestrator(fetch).fetch_all_sources([], *window)

        assert outcome.events == []
        assert outcome.failed_events == []
        assert calls == []

    async def test_window_is_passed_as_iso_strings(self, entities, window):
        calls = []

        async def fetch(source_id, start, end):
            calls.append((source_id, start, end))
            return []

        await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)

        assert calls == [
            ("calendar.work", "2026-10-18T00:00:00-07:00", "2026-10-25T00:00:00-07:00"),
            ("calendar.home", "2026-10-18T00:00:00-07:00", "2026-10-25T00:00:00-07:00"),
        ]

    async def test_failing_source_is_isolated(self, entities, window, make_raw_event):
        async def fetch(source_id, start, end):
            if source_id == "calendar.home":
                raise SourceFetchError("HTTP 500", source_id=source_id, status_code=500)
            return [make_raw_event("a", entity=None)]

        outcome = await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)

        assert [raw["id"] for raw in outcome.events] == ["a"]
        assert len(outcome.failed_events) == 1
        failed = outcome.failed_events[0]
        assert failed.name == "Home"
        assert isinstance(failed.error, SourceFetchError)
        assert failed.error.status_code == 500

    async def test_unexpected_exceptions_are_recorded_too(self, entities, window):
        async def fetch(source_id, start, end):
            raise RuntimeError(f"{source_id} unreachable")

        outcome = await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)

        assert [f.name for f in outcome.failed_events] == ["calendar.work", "Home"]
        assert outcome.events == []

    async def test_results_merge_in_configured_order(self, entities, window, make_raw_event):
        async def fetch(source_id, start, end):
            if source_id == "calendar.work":
                # Finishes last but is still merged first
                await asyncio.sleep(0.01)
            return [make_raw_event(f"{source_id}-1", entity=None)]

        outcome = await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)

        assert [raw["id"] for raw in outcome.events] == ["calendar.work-1", "calendar.home-1"]
        assert [raw["entity"].entity for raw in outcome.events] == ["calendar.work", "calendar.home"]

    async def test_sources_are_fetched_concurrently(self, entities, window):
        started = []
        all_started = asyncio.Event()

        async def fetch(source_id, start, end):
            started.append(source_id)
            if len(started) == len(entities):
                all_started.set()
            # Deadlocks unless every fetch is in flight at the same time
            await asyncio.wait_for(all_started.wait(), timeout=1.0)
            return []

        outcome = await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)

        assert outcome.failed_events == []
        assert sorted(started) == ["calendar.home", "calendar.work"]

    async def test_blocking_sources_do_not_serialize(self, entities, window):
        def fetch(source_id, start, end):
            time.sleep(0.3)
            return []

        started = time.monotonic()
        outcome = await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)
        elapsed = time.monotonic() - started

        assert outcome.failed_events == []
        assert elapsed < 0.55

    async def test_cancellation_is_not_recorded_as_failure(self, entities, window):
        async def fetch(source_id, start, end):
            if source_id == "calendar.home":
                raise asyncio.CancelledError()
            return []

        with pytest.raises(asyncio.CancelledError):
            await FetchOrchestrator(fetch).fetch_all_sources(entities, *window)
