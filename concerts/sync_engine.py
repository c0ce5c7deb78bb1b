"""Calendar sync engine: cached fetching of upcoming and past concerts."""
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
import requests

from calendar_api.google_calendar import GoogleCalendarClient
from processor.concert_processor import ConcertProcessor
from processor.dates import parse_event_datetime
from processor.models import Concert, ConcertImage, FetchResult, FetchState, RawCalendarEvent
from processor.static_concerts import static_past_concerts, static_upcoming_concerts
from storage.concert_cache import PAST_CACHE_KEY, UPCOMING_CACHE_KEY, ConcertCache, utc_now

logger = logging.getLogger(__name__)

OVERFETCH_FACTOR = 3
DEFAULT_PAST_LIMIT = 9

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class CalendarSyncEngine:
    """Fetches concerts through the tiers live API, stale cache, static data.

    Each call walks the tiers once:

    1. a fresh cache entry is returned without a network call
    2. without credentials the static data is returned
    3. otherwise the calendar is queried and the result cached
    4. on any transport failure the cached entry is returned even if expired
    5. with no cache at all the static data is returned

    The ``*_async`` methods walk the same tiers with an ``httpx.AsyncClient``
    so a refresh scheduled on an event loop never blocks it.
    """

    def __init__(self, client: Optional[GoogleCalendarClient], processor: ConcertProcessor,
                 cache: ConcertCache, max_results_display: int = 5,
                 upcoming_key: str = UPCOMING_CACHE_KEY, past_key: str = PAST_CACHE_KEY,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the engine.

        Args:
            client: Calendar client, or None when credentials are missing
            processor: Concert classifier/transformer
            cache: Concert cache
            max_results_display: Number of upcoming concerts to keep
            upcoming_key: Cache key for upcoming concerts
            past_key: Cache key for past concerts
            clock: Returns the current aware datetime
        """
        self.client = client
        self.processor = processor
        self.cache = cache
        self.max_results_display = max_results_display
        self.upcoming_key = upcoming_key
        self.past_key = past_key
        self.clock = clock

        if not self.is_configured:
            logger.warning("Google Calendar API not configured. Using cached/static data.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def fetch_upcoming(self, use_cache: bool = True) -> FetchResult:
        """
        Fetch upcoming concerts.

        Args:
            use_cache: Return a fresh cache entry without calling the API

        Returns:
            FetchResult with the concerts and the tier they came from
        """
        return self._fetch(
            key=self.upcoming_key,
            label='upcoming',
            use_cache=use_cache,
            static=static_upcoming_concerts,
            live=self._fetch_live_upcoming,
        )

    def fetch_past(self, limit: int = DEFAULT_PAST_LIMIT, use_cache: bool = True) -> FetchResult:
        """
        Fetch the most recent past concerts, newest first.

        Args:
            limit: Maximum number of concerts
            use_cache: Return a fresh cache entry without calling the API

        Returns:
            FetchResult with the concerts and the tier they came from
        """
        return self._fetch(
            key=self.past_key,
            label='past',
            use_cache=use_cache,
            static=lambda: static_past_concerts(limit),
            live=lambda: self._fetch_live_past(limit),
        )

    def fetch_upcoming_concerts(self) -> List[Concert]:
        return self.fetch_upcoming().concerts

    def fetch_past_concerts(self, limit: int = DEFAULT_PAST_LIMIT) -> List[Concert]:
        return self.fetch_past(limit).concerts

    def force_refresh(self) -> FetchResult:
        """
        Clear the upcoming cache entry and fetch again.

        Only meant for manual refreshes; nothing calls it on a timer.

        Returns:
            FetchResult for the upcoming concerts
        """
        logger.info("Force refreshing upcoming concert data")
        self.cache.force_invalidate(self.upcoming_key)
        return self.fetch_upcoming(use_cache=False)

    def force_refresh_past(self, limit: int = DEFAULT_PAST_LIMIT) -> FetchResult:
        logger.info("Force refreshing past concert data")
        self.cache.force_invalidate(self.past_key)
        return self.fetch_past(limit, use_cache=False)

    async def fetch_upcoming_async(self, http_client: Optional[httpx.AsyncClient] = None,
                                   use_cache: bool = True) -> FetchResult:
        """
        Non-blocking variant of ``fetch_upcoming``.

        Args:
            http_client: Async client to use (default: a client opened for this call)
            use_cache: Return a fresh cache entry without calling the API

        Returns:
            FetchResult with the concerts and the tier they came from
        """
        if http_client is None:
            async with httpx.AsyncClient() as http:
                return await self.fetch_upcoming_async(http, use_cache)

        return await self._fetch_async(
            key=self.upcoming_key,
            label='upcoming',
            use_cache=use_cache,
            static=static_upcoming_concerts,
            live=lambda: self._fetch_live_upcoming_async(http_client),
        )

    async def fetch_past_async(self, http_client: Optional[httpx.AsyncClient] = None,
                               limit: int = DEFAULT_PAST_LIMIT,
                               use_cache: bool = True) -> FetchResult:
        if http_client is None:
            async with httpx.AsyncClient() as http:
                return await self.fetch_past_async(http, limit, use_cache)

        return await self._fetch_async(
            key=self.past_key,
            label='past',
            use_cache=use_cache,
            static=lambda: static_past_concerts(limit),
            live=lambda: self._fetch_live_past_async(http_client, limit),
        )

    def _fetch(self, key: str, label: str, use_cache: bool,
               static: Callable[[], List[Concert]],
               live: Callable[[], List[Concert]]) -> FetchResult:
        result = self._without_api(key, label, use_cache, static)
        if result is not None:
            return result

        try:
            concerts = live()
        except (requests.RequestException, ValueError, AttributeError, TypeError) as e:
            return self._fallback(key, label, static, e)
        return self._store(key, label, concerts)

    async def _fetch_async(self, key: str, label: str, use_cache: bool,
                           static: Callable[[], List[Concert]],
                           live: Callable[[], Awaitable[List[Concert]]]) -> FetchResult:
        result = self._without_api(key, label, use_cache, static)
        if result is not None:
            return result

        try:
            concerts = await live()
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            return self._fallback(key, label, static, e)
        return self._store(key, label, concerts)

    def _without_api(self, key: str, label: str, use_cache: bool,
                     static: Callable[[], List[Concert]]) -> Optional[FetchResult]:
        # Fresh cache entry, then unconfigured static data
        if use_cache and self.cache.is_valid(key):
            cached = self.cache.read(key)
            if cached is not None:
                logger.info(f"Using cached {label} concert data ({len(cached)} concerts)")
                return FetchResult(cached, FetchState.CACHED_HIT)

        if not self.is_configured:
            logger.warning(f"API not configured, using static {label} concert data")
            return FetchResult(static(), FetchState.UNCONFIGURED_FALLBACK)
        return None

    def _fallback(self, key: str, label: str, static: Callable[[], List[Concert]],
                  error: Exception) -> FetchResult:
        logger.error(f"Error fetching {label} concert data: {error}")

        cached = self.cache.read(key)
        if cached is not None:
            logger.warning(f"Using expired cached {label} concert data as fallback")
            return FetchResult(cached, FetchState.STALE_CACHE_FALLBACK)

        logger.warning(f"Using static {label} concert fallback")
        return FetchResult(static(), FetchState.STATIC_FALLBACK)

    def _store(self, key: str, label: str, concerts: List[Concert]) -> FetchResult:
        self.cache.write(key, concerts)
        logger.info(f"Fetched {len(concerts)} {label} concerts")
        return FetchResult(concerts, FetchState.LIVE_FETCH_SUCCESS)

    def _fetch_live_upcoming(self) -> List[Concert]:
        events = self.client.fetch_events(
            max_results=self.max_results_display * OVERFETCH_FACTOR,
            time_min=self.clock(),
        )
        concert_events = self.processor.filter_concert_events(events)
        return self.processor.transform_events(concert_events[:self.max_results_display])

    def _fetch_live_past(self, limit: int) -> List[Concert]:
        events = self.client.fetch_events(
            max_results=limit * OVERFETCH_FACTOR,
            time_max=self.clock(),
        )
        concert_events = self.processor.filter_concert_events(events)
        concert_events.sort(key=self._start_sort_key, reverse=True)
        return self.processor.transform_events(concert_events[:limit])

    async def _fetch_live_upcoming_async(self, http_client: httpx.AsyncClient) -> List[Concert]:
        events = await self.client.fetch_events_async(
            http_client,
            max_results=self.max_results_display * OVERFETCH_FACTOR,
            time_min=self.clock(),
        )
        concert_events = self.processor.filter_concert_events(events)[:self.max_results_display]
        searched = await self._search_images(concert_events, http_client)
        return self.processor.transform_events(concert_events, searched)

    async def _fetch_live_past_async(self, http_client: httpx.AsyncClient,
                                     limit: int) -> List[Concert]:
        events = await self.client.fetch_events_async(
            http_client,
            max_results=limit * OVERFETCH_FACTOR,
            time_max=self.clock(),
        )
        concert_events = self.processor.filter_concert_events(events)
        concert_events.sort(key=self._start_sort_key, reverse=True)
        concert_events = concert_events[:limit]
        searched = await self._search_images(concert_events, http_client)
        return self.processor.transform_events(concert_events, searched)

    async def _search_images(self, events: Sequence[RawCalendarEvent],
                             http_client: httpx.AsyncClient) -> Dict[str, List[ConcertImage]]:
        """Run the Drive folder search ahead of transforming, for events that need it."""
        searched: Dict[str, List[ConcertImage]] = {}
        for event in events:
            if self.processor.needs_image_search(event):
                title, _ = self.processor.extract_title_and_venue(event)
                searched[event.id] = await self.processor.image_finder.find_images_async(
                    title, http_client)
        return searched

    @staticmethod
    def _start_sort_key(event: RawCalendarEvent) -> datetime:
        return parse_event_datetime(event.start) or _OLDEST
