"""Shared fixtures for concert sync tests."""
from datetime import datetime, timedelta, timezone

import pytest

from processor.models import Attachment, RawCalendarEvent
from storage.cache_store import MemoryCacheStore


class FakeClock:
    """Settable clock returning an aware datetime."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock fixed at 2025-06-15 12:00 UTC."""
    return FakeClock(datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return MemoryCacheStore()


@pytest.fixture
def make_event():
    """Factory for raw calendar events."""
    def _make(event_id='evt1', title='[CONCERT] Summer Show',
              start='2025-06-20T19:00:00+02:00', end='2025-06-20T21:30:00+02:00',
              location=None, description=None, attachments=()):
        return RawCalendarEvent(
            id=event_id,
            title=title,
            start=start,
            end=end,
            location=location,
            description=description,
            attachments=tuple(
                a if isinstance(a, Attachment) else Attachment.from_api(a)
                for a in attachments
            ),
            html_link=f"https://www.google.com/calendar/event?eid={event_id}",
        )
    return _make
