"""Unit tests for CalendarSyncEngine."""
import asyncio
from unittest.mock import Mock

import httpx
import pytest
import requests
import responses

from calendar_api.drive_images import DriveImageFinder
from calendar_api.google_calendar import GoogleCalendarClient
from concerts.sync_engine import CalendarSyncEngine
from processor.concert_processor import ConcertProcessor
from processor.dates import DATE_TBA
from processor.models import FetchState
from storage.concert_cache import PAST_CACHE_KEY, UPCOMING_CACHE_KEY, ConcertCache

EVENTS_URL = 'https://www.googleapis.com/calendar/v3/calendars/band%40group.calendar.google.com/events'


@pytest.fixture
def client():
    return Mock(spec=GoogleCalendarClient)


@pytest.fixture
def cache(store, clock):
    return ConcertCache(store, clock=clock)


@pytest.fixture
def engine(client, cache, clock):
    return CalendarSyncEngine(client, ConcertProcessor(), cache, max_results_display=2, clock=clock)


@pytest.fixture
def calendar_client():
    return GoogleCalendarClient(api_key='key', calendar_id='band@group.calendar.google.com')


class TestFetchUpcoming:
    """Test cases for the upcoming fetch tiers."""

    def test_live_fetch(self, engine, client, cache, clock, make_event):
        client.fetch_events.return_value = [
            make_event(event_id='a', title='[CONCERT] A'),
            make_event(event_id='b', title='Team Meeting'),
            make_event(event_id='c', title='[CONCERT] C'),
            make_event(event_id='d', title='[CONCERT] D'),
        ]

        result = engine.fetch_upcoming()

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert [c.id for c in result.concerts] == ['calendar-a', 'calendar-c']
        client.fetch_events.assert_called_once_with(max_results=6, time_min=clock.now)
        assert cache.is_valid(UPCOMING_CACHE_KEY)
        assert [c.id for c in cache.read(UPCOMING_CACHE_KEY)] == ['calendar-a', 'calendar-c']

    def test_cached_hit_skips_api(self, engine, client, make_event):
        client.fetch_events.return_value = [make_event(event_id='a')]
        engine.fetch_upcoming()

        result = engine.fetch_upcoming()

        assert result.state == FetchState.CACHED_HIT
        assert [c.id for c in result.concerts] == ['calendar-a']
        assert client.fetch_events.call_count == 1

    def test_expired_cache_refetches(self, engine, client, clock, make_event):
        client.fetch_events.return_value = [make_event(event_id='a')]
        engine.fetch_upcoming()
        clock.advance(hours=25)

        result = engine.fetch_upcoming()

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert client.fetch_events.call_count == 2

    def test_stale_cache_on_network_error(self, engine, client, clock, make_event):
        client.fetch_events.return_value = [make_event(event_id='a')]
        engine.fetch_upcoming()
        clock.advance(hours=25)
        client.fetch_events.side_effect = requests.ConnectionError('offline')

        result = engine.fetch_upcoming()

        assert result.state == FetchState.STALE_CACHE_FALLBACK
        assert result.is_stale
        assert [c.id for c in result.concerts] == ['calendar-a']

    def test_static_on_error_without_cache(self, engine, client):
        client.fetch_events.side_effect = requests.HTTPError('403 Forbidden')

        result = engine.fetch_upcoming()

        assert result.state == FetchState.STATIC_FALLBACK
        assert [c.id for c in result.concerts] == ['static-upcoming-1']
        assert result.concerts[0].is_placeholder

    def test_invalid_json_falls_back(self, engine, client):
        client.fetch_events.side_effect = ValueError('Expecting value')

        assert engine.fetch_upcoming().state == FetchState.STATIC_FALLBACK

    def test_unexpected_payload_error_falls_back(self, engine, client):
        client.fetch_events.side_effect = AttributeError("'str' object has no attribute 'get'")

        assert engine.fetch_upcoming().state == FetchState.STATIC_FALLBACK

    @responses.activate
    def test_odd_event_fields_do_not_escape(self, calendar_client, cache, clock):
        responses.add(
            responses.GET,
            EVENTS_URL,
            json={'items': [
                {'id': 'x', 'summary': '[CONCERT] A', 'start': '2025-07-01'},
                {'id': 'y', 'summary': 42, 'start': {'dateTime': '2025-07-02T19:00:00+02:00'}},
            ]},
            status=200
        )
        engine = CalendarSyncEngine(calendar_client, ConcertProcessor(), cache, clock=clock)

        result = engine.fetch_upcoming()

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert [c.id for c in result.concerts] == ['calendar-x']
        assert result.concerts[0].date == DATE_TBA

    def test_unconfigured(self, cache, clock):
        engine = CalendarSyncEngine(None, ConcertProcessor(), cache, clock=clock)

        result = engine.fetch_upcoming()

        assert not engine.is_configured
        assert result.state == FetchState.UNCONFIGURED_FALLBACK
        assert [c.id for c in result.concerts] == ['static-upcoming-1']
        assert not cache.is_valid(UPCOMING_CACHE_KEY)

    def test_unconfigured_prefers_fresh_cache(self, cache, clock, make_event):
        processor = ConcertProcessor()
        cache.write(UPCOMING_CACHE_KEY, processor.process_events([make_event(event_id='a')]))
        engine = CalendarSyncEngine(None, processor, cache, clock=clock)

        result = engine.fetch_upcoming()

        assert result.state == FetchState.CACHED_HIT
        assert [c.id for c in result.concerts] == ['calendar-a']

    def test_force_refresh_bypasses_cache(self, engine, client, make_event):
        client.fetch_events.return_value = [make_event(event_id='a')]
        engine.fetch_upcoming()
        client.fetch_events.return_value = [make_event(event_id='b')]

        result = engine.force_refresh()

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert [c.id for c in result.concerts] == ['calendar-b']
        assert [c.id for c in engine.fetch_upcoming_concerts()] == ['calendar-b']


class TestFetchPast:
    """Test cases for past concert fetching."""

    def test_sorted_newest_first_and_limited(self, engine, client, clock, make_event):
        client.fetch_events.return_value = [
            make_event(event_id='old', start='2025-01-10T19:00:00+01:00', end=None),
            make_event(event_id='new', start='2025-05-10T19:00:00+02:00', end=None),
            make_event(event_id='meeting', title='Team Meeting', start='2025-05-11T09:00:00+02:00'),
            make_event(event_id='mid', start='2025-03-10', end=None),
        ]

        result = engine.fetch_past(limit=2)

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert [c.id for c in result.concerts] == ['calendar-new', 'calendar-mid']
        client.fetch_events.assert_called_once_with(max_results=6, time_max=clock.now)

    def test_past_cached_separately(self, engine, client, cache, make_event):
        client.fetch_events.return_value = [make_event(event_id='p')]
        engine.fetch_past(limit=3)

        assert cache.is_valid(PAST_CACHE_KEY)
        assert not cache.is_valid(UPCOMING_CACHE_KEY)
        assert engine.fetch_past(limit=3).state == FetchState.CACHED_HIT

    def test_static_past_limit(self, cache, clock):
        engine = CalendarSyncEngine(None, ConcertProcessor(), cache, clock=clock)

        concerts = engine.fetch_past_concerts(limit=3)

        assert [c.id for c in concerts] == ['static-past-1', 'static-past-2', 'static-past-3']

    def test_force_refresh_past(self, engine, client, make_event):
        client.fetch_events.return_value = [make_event(event_id='p')]
        engine.fetch_past()
        engine.force_refresh_past()

        assert client.fetch_events.call_count == 2


def run_async(engine, handler, **kwargs):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await engine.fetch_upcoming_async(http, **kwargs)
    return asyncio.run(main())


class TestFetchUpcomingAsync:
    """Test cases for the httpx-based fetch."""

    def test_live_fetch_searches_drive_images(self, calendar_client, cache, clock):
        finder = DriveImageFinder(api_key='key', parent_folder_id='folder')
        engine = CalendarSyncEngine(calendar_client, ConcertProcessor(image_finder=finder), cache,
                                    max_results_display=2, clock=clock)
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path.endswith('/events'):
                return httpx.Response(200, json={'items': [
                    {'id': 'a', 'summary': '[CONCERT] Summer Show',
                     'start': {'dateTime': '2025-06-20T19:00:00+02:00'}},
                    {'id': 'b', 'summary': 'Team Meeting',
                     'start': {'dateTime': '2025-06-21T09:00:00+02:00'}},
                ]})
            return httpx.Response(200, json={'files': [
                {'id': 'img1', 'name': 'Summer Show.jpg', 'mimeType': 'image/jpeg'},
            ]})

        result = run_async(engine, handler)

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert [c.id for c in result.concerts] == ['calendar-a']
        assert result.concerts[0].image == 'https://lh3.googleusercontent.com/d/img1'
        assert paths == ['/calendar/v3/calendars/band@group.calendar.google.com/events',
                         '/drive/v3/files']
        assert [c.id for c in cache.read(UPCOMING_CACHE_KEY)] == ['calendar-a']

    def test_cached_hit_skips_api(self, calendar_client, cache, clock, make_event):
        processor = ConcertProcessor()
        cache.write(UPCOMING_CACHE_KEY, processor.process_events([make_event(event_id='a')]))
        engine = CalendarSyncEngine(calendar_client, processor, cache, clock=clock)

        def handler(request):
            raise AssertionError('unexpected request')

        result = run_async(engine, handler)

        assert result.state == FetchState.CACHED_HIT

    def test_stale_cache_on_http_error(self, calendar_client, cache, clock, make_event):
        processor = ConcertProcessor()
        cache.write(UPCOMING_CACHE_KEY, processor.process_events([make_event(event_id='a')]))
        clock.advance(hours=25)
        engine = CalendarSyncEngine(calendar_client, processor, cache, clock=clock)

        result = run_async(engine, lambda request: httpx.Response(503))

        assert result.state == FetchState.STALE_CACHE_FALLBACK
        assert [c.id for c in result.concerts] == ['calendar-a']

    def test_static_on_connect_error(self, calendar_client, cache, clock):
        engine = CalendarSyncEngine(calendar_client, ConcertProcessor(), cache, clock=clock)

        def handler(request):
            raise httpx.ConnectError('offline', request=request)

        result = run_async(engine, handler)

        assert result.state == FetchState.STATIC_FALLBACK
        assert [c.id for c in result.concerts] == ['static-upcoming-1']

    def test_unconfigured(self, cache, clock):
        engine = CalendarSyncEngine(None, ConcertProcessor(), cache, clock=clock)

        result = asyncio.run(engine.fetch_upcoming_async())

        assert result.state == FetchState.UNCONFIGURED_FALLBACK

    def test_past_sorted_newest_first(self, calendar_client, cache, clock):
        engine = CalendarSyncEngine(calendar_client, ConcertProcessor(), cache, clock=clock)

        def handler(request):
            return httpx.Response(200, json={'items': [
                {'id': 'old', 'summary': '[CONCERT] Old', 'start': {'date': '2025-01-10'}},
                {'id': 'new', 'summary': '[CONCERT] New', 'start': {'date': '2025-05-10'}},
            ]})

        async def main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
                return await engine.fetch_past_async(http, limit=1)

        result = asyncio.run(main())

        assert result.state == FetchState.LIVE_FETCH_SUCCESS
        assert [c.id for c in result.concerts] == ['calendar-new']
