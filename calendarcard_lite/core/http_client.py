"""Home Assistant calendar API client for calendarcard_lite.

Implements the fetch capability the orchestrator needs:
`fetch_calendar_events(source_id, start, end) -> list of raw events`, backed
by `GET /api/calendars/<entity_id>?start=...&end=...` on a Home Assistant
instance.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Optional

import httpx

from calendarcard_lite.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=10.0,
    read=30.0,
    write=10.0,
    pool=30.0,
)

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
)

DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "application/json",
    "User-Agent": "calendarcard-lite/0.1",
}


class HomeAssistantCalendarClient:
    """Async client for the Home Assistant calendar REST API.

    Usage:
        async with HomeAssistantCalendarClient(url, token) as client:
            result = await get_all_events(config, client.fetch_calendar_events)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize client.

        Args:
            base_url: Home Assistant base URL, e.g. http://homeassistant.local:8123
            token: Long-lived access token
            timeout: Custom timeout configuration
            client: Pre-built httpx client (tests inject one with a MockTransport)
        """
        headers = dict(DEFAULT_HEADERS)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout or DEFAULT_TIMEOUT,
            limits=DEFAULT_LIMITS,
        )
        if client is not None:
            client.headers.update(headers)

    async def fetch_calendar_events(self, source_id: str, start: str, end: str) -> list[dict[str, Any]]:
        """Fetch one calendar's raw events for a window.

        Raises:
            SourceFetchError: On transport errors, non-2xx responses or a non-list body
        """
        path = f"/api/calendars/{source_id}"
        try:
            response = await self._client.get(path, params={"start": start, "end": end})
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise SourceFetchError(
                f"Calendar {source_id!r} returned HTTP {status}",
                source_id=source_id,
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise SourceFetchError(
                f"Calendar {source_id!r} request failed: {e}", source_id=source_id
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise SourceFetchError(
                f"Calendar {source_id!r} returned invalid JSON",
                source_id=source_id,
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, list):
            raise SourceFetchError(
                f"Calendar {source_id!r} returned {type(payload).__name__}, expected a list",
                source_id=source_id,
                status_code=response.status_code,
            )

        logger.debug("Calendar %r: %d raw events", source_id, len(payload))
        return payload

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> HomeAssistantCalendarClient:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.aclose()
