"""Client for the Google Calendar events API."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import requests

from processor.models import RawCalendarEvent

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """Read-only client for one public Google Calendar.

    ``fetch_events`` uses a blocking requests session; ``fetch_events_async``
    issues the same query through an ``httpx.AsyncClient`` for callers
    running on an event loop.
    """

    BASE_URL = "https://www.googleapis.com/calendar/v3/calendars"
    FIELDS = 'items(id,summary,description,start,end,location,attachments,htmlLink)'

    def __init__(self, api_key: str, calendar_id: str, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        """
        Initialize the calendar client.

        Args:
            api_key: Google API key
            calendar_id: Calendar identifier (usually an e-mail style address)
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session
        """
        self.api_key = api_key
        self.calendar_id = calendar_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def events_url(self) -> str:
        return f"{self.BASE_URL}/{quote(self.calendar_id, safe='')}/events"

    def _params(self, max_results: int, time_min: Optional[datetime],
                time_max: Optional[datetime]) -> Dict[str, Any]:
        params = {
            'key': self.api_key,
            'maxResults': max_results,
            'singleEvents': 'true',
            'orderBy': 'startTime',
            'fields': self.FIELDS,
        }
        if time_min is not None:
            params['timeMin'] = time_min.isoformat()
        if time_max is not None:
            params['timeMax'] = time_max.isoformat()

        logger.info(
            f"Fetching up to {max_results} calendar events "
            f"(timeMin={params.get('timeMin')}, timeMax={params.get('timeMax')})"
        )
        return params

    @staticmethod
    def _parse_events(data: Any) -> List[RawCalendarEvent]:
        items = data.get('items') if isinstance(data, dict) else None
        if not isinstance(items, list):
            items = []
        events = [RawCalendarEvent.from_api(item) for item in items if isinstance(item, dict)]

        logger.info(f"Fetched {len(events)} calendar events")
        return events

    def fetch_events(self, max_results: int, time_min: Optional[datetime] = None,
                     time_max: Optional[datetime] = None) -> List[RawCalendarEvent]:
        """
        Fetch single (expanded) events ordered by start time.

        Args:
            max_results: Maximum number of events to request
            time_min: Only events ending after this time
            time_max: Only events starting before this time

        Returns:
            List of RawCalendarEvent objects

        Raises:
            requests.RequestException: On transport errors, non-2xx
                responses or an undecodable body
        """
        params = self._params(max_results, time_min, time_max)
        response = self.session.get(self.events_url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return self._parse_events(response.json())

    async def fetch_events_async(self, http_client: httpx.AsyncClient, max_results: int,
                                 time_min: Optional[datetime] = None,
                                 time_max: Optional[datetime] = None) -> List[RawCalendarEvent]:
        """
        Non-blocking variant of ``fetch_events``.

        Args:
            http_client: Async client to send the request with
            max_results: Maximum number of events to request
            time_min: Only events ending after this time
            time_max: Only events starting before this time

        Returns:
            List of RawCalendarEvent objects

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
            ValueError: On an undecodable body
        """
        params = self._params(max_results, time_min, time_max)
        response = await http_client.get(self.events_url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return self._parse_events(response.json())
