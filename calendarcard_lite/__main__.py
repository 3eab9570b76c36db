"""Command-line entry for calendarcard_lite.

Loads a card configuration, fetches every configured calendar (from a Home
Assistant instance or a JSON fixture file) and prints the grouped result as
JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

from dateutil import parser as date_parser

from .config_loader import CardConfig, load_config
from .core.clock import Clock, FixedClock, SystemClock
from .core.http_client import HomeAssistantCalendarClient
from .core.temporal import resolve_timezone
from .domain.models import AllEventsResult
from .exceptions import CalendarCardError, ConfigValidationError, SourceFetchError
from .fetch_orchestrator import get_all_events
from .lite_logging import configure_lite_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2


class FixtureCalendarSource:
    """Fetch capability reading raw events from a JSON mapping.

    The mapping is `{entity_id: [raw events]}`; a string value stands for a
    failing source and is raised as its error message.
    """

    def __init__(self, calendars: dict[str, Any]):
        self.calendars = calendars

    @classmethod
    def from_file(cls, path: str) -> FixtureCalendarSource:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigValidationError(f"Unable to read events file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("Events file must map entity ids to event lists")
        return cls(data)

    def fetch_calendar_events(self, source_id: str, start: str, end: str) -> list[dict[str, Any]]:
        if source_id not in self.calendars:
            raise SourceFetchError(f"No fixture data for {source_id!r}", source_id=source_id)
        events = self.calendars[source_id]
        if isinstance(events, str):
            raise SourceFetchError(events, source_id=source_id)
        return events


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for calendarcard_lite CLI."""
    parser = argparse.ArgumentParser(
        prog="calendarcard_lite",
        description="CalendarCard Lite - fetch, filter and group calendar events by day",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendarcard_lite --config card.yaml --url http://ha.local:8123 --token TOKEN
  python -m calendarcard_lite --config card.yaml --events-file events.json --now 2026-10-18T09:00
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="Card config (YAML or JSON)")
    parser.add_argument(
        "--url",
        default=os.environ.get("HASS_URL"),
        help="Home Assistant base URL (default: HASS_URL env var)",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("HASS_TOKEN"),
        help="Home Assistant long-lived access token (default: HASS_TOKEN env var)",
    )
    parser.add_argument(
        "--events-file",
        metavar="PATH",
        help="JSON file mapping entity ids to raw event lists (instead of --url)",
    )
    parser.add_argument("--now", metavar="ISO", help="Pin the current time (ISO 8601)")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _build_clock(config: CardConfig, now: Optional[str]) -> Clock:
    if not now:
        return SystemClock(config.timezone)
    try:
        pinned = date_parser.isoparse(now)
    except ValueError as e:
        raise ConfigValidationError(f"Invalid --now value {now!r}", field_name="now") from e
    tz = resolve_timezone(config.timezone)
    pinned = pinned.replace(tzinfo=tz) if pinned.tzinfo is None else pinned.astimezone(tz)
    return FixedClock(pinned)


async def _run(args: argparse.Namespace, config: CardConfig) -> AllEventsResult:
    clock = _build_clock(config, args.now)
    if args.events_file:
        source = FixtureCalendarSource.from_file(args.events_file)
        return await get_all_events(config, source.fetch_calendar_events, clock)

    if not args.url:
        raise ConfigValidationError("Either --url (or HASS_URL) or --events-file is required")
    async with HomeAssistantCalendarClient(args.url, args.token) as client:
        return await get_all_events(config, client.fetch_calendar_events, clock)


def run_cli(argv: Optional[list[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    args = _create_parser().parse_args(argv)
    configure_lite_logging(debug_mode=args.debug)

    try:
        config = load_config(args.config)
        result = asyncio.run(_run(args, config))
    except ConfigValidationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR
    except CalendarCardError as e:
        logger.error("Event processing failed: %s", e)
        return EXIT_ERROR

    sys.stdout.write(json.dumps(result.to_json_dict(), indent=args.indent or None))
    sys.stdout.write("\n")
    return EXIT_OK


def main() -> NoReturn:
    """Run the calendarcard_lite CLI."""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
