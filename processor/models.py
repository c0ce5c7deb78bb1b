"""Data models for concert processing."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from processor.dates import DATE_TBA, TIME_TBA, format_time


SOURCE_LIVE_SYNC = 'live-sync'
SOURCE_STATIC_FALLBACK = 'static-fallback'
SOURCE_TEST = 'test'
SOURCE_AUTO_ARCHIVED = 'auto-archived'

VENUE_TBA = 'Venue TBA'
DESCRIPTION_PENDING = 'Concert details to be announced.'
DEFAULT_IMAGE_TITLE = 'Concert Image'


def _text(value: Any) -> Optional[str]:
    """String form of an API scalar; None for missing values and containers."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return value if isinstance(value, str) else str(value)


def _when(value: Any) -> Optional[str]:
    # start/end must be objects holding dateTime or date
    if not isinstance(value, dict):
        return None
    return _text(value.get('dateTime')) or _text(value.get('date'))


@dataclass(frozen=True)
class Attachment:
    """File attached to a calendar event."""
    file_url: str
    mime_type: str = ''
    title: Optional[str] = None
    file_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Attachment':
        return cls(
            file_url=_text(data.get('fileUrl')) or '',
            mime_type=_text(data.get('mimeType')) or '',
            title=_text(data.get('title')),
            file_id=_text(data.get('fileId')),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'fileUrl': self.file_url, 'mimeType': self.mime_type}
        if self.title:
            data['title'] = self.title
        if self.file_id:
            data['fileId'] = self.file_id
        return data


@dataclass(frozen=True)
class RawCalendarEvent:
    """Event as returned by the calendar events query."""
    id: str
    title: str
    start: Optional[str] = None
    end: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()
    html_link: Optional[str] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> 'RawCalendarEvent':
        """
        Build an event from one entry of the API's ``items`` list.

        ``start``/``end`` keep whichever of ``dateTime`` (precise) or
        ``date`` (all-day) the API supplied. Fields of an unexpected type
        are coerced to strings or dropped.

        Args:
            item: Event resource dictionary

        Returns:
            RawCalendarEvent
        """
        attachments = item.get('attachments')
        if not isinstance(attachments, list):
            attachments = []
        return cls(
            id=_text(item.get('id')) or '',
            title=_text(item.get('summary')) or '',
            start=_when(item.get('start')),
            end=_when(item.get('end')),
            location=_text(item.get('location')),
            description=_text(item.get('description')),
            attachments=tuple(
                Attachment.from_api(a) for a in attachments if isinstance(a, dict)
            ),
            html_link=_text(item.get('htmlLink')),
        )


@dataclass(frozen=True)
class ConcertImage:
    """Embeddable image for a concert."""
    url: str
    title: str = DEFAULT_IMAGE_TITLE
    mime_type: str = 'image/unknown'
    original_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'url': self.url, 'title': self.title, 'mimeType': self.mime_type}
        if self.original_url:
            data['originalUrl'] = self.original_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConcertImage':
        return cls(
            url=data['url'],
            title=data.get('title') or DEFAULT_IMAGE_TITLE,
            mime_type=data.get('mimeType') or 'image/unknown',
            original_url=data.get('originalUrl'),
        )


@dataclass(frozen=True)
class ConcertLink:
    """Link found in an event description."""
    url: str
    text: str
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {'url': self.url, 'text': self.text, 'type': self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConcertLink':
        return cls(url=data['url'], text=data.get('text') or data['url'],
                   type=data.get('type') or 'website')


@dataclass(frozen=True)
class OriginalEvent:
    """Provenance of a concert built from a calendar event."""
    id: str
    html_link: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    location: Optional[str] = None
    attachments: Tuple[Attachment, ...] = ()

    @property
    def is_all_day(self) -> bool:
        return bool(self.start) and 'T' not in self.start

    @classmethod
    def from_raw(cls, event: RawCalendarEvent) -> 'OriginalEvent':
        return cls(
            id=event.id,
            html_link=event.html_link,
            start=event.start,
            end=event.end,
            location=event.location,
            attachments=event.attachments,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'htmlLink': self.html_link,
            'startDate': self.start,
            'endDate': self.end,
            'location': self.location,
            'attachments': [a.to_dict() for a in self.attachments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OriginalEvent':
        return cls(
            id=str(data.get('id') or ''),
            html_link=data.get('htmlLink'),
            start=data.get('startDate'),
            end=data.get('endDate'),
            location=data.get('location'),
            attachments=tuple(
                Attachment.from_api(a) for a in data.get('attachments') or []
            ),
        )


@dataclass(frozen=True)
class Concert:
    """Normalized concert record."""
    id: str
    title: str
    venue: str
    date: str
    description: str
    image: str
    images: Tuple[ConcertImage, ...] = ()
    links: Tuple[ConcertLink, ...] = ()
    time: Optional[str] = None
    duration: Optional[str] = None
    is_placeholder: bool = False
    source: str = SOURCE_LIVE_SYNC
    original_event: Optional[OriginalEvent] = None

    @property
    def has_images(self) -> bool:
        return len(self.images) > 0

    @property
    def display_time(self) -> str:
        """Time of day for display, derived from the original start when unset."""
        if self.time:
            return self.time
        if self.original_event and self.original_event.start:
            return format_time(self.original_event.start)
        return TIME_TBA

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to the camelCase layout used in caches and API responses.

        Returns:
            JSON-compatible dictionary
        """
        data = {
            'id': self.id,
            'title': self.title,
            'venue': self.venue,
            'date': self.date,
            'time': self.display_time,
            'description': self.description,
            'image': self.image,
            'images': [image.to_dict() for image in self.images],
            'hasImages': self.has_images,
            'links': [link.to_dict() for link in self.links],
            'isPlaceholder': self.is_placeholder,
            'source': self.source,
        }
        if self.duration:
            data['duration'] = self.duration
        if self.original_event:
            data['originalEvent'] = self.original_event.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Concert':
        """
        Rebuild a concert from ``to_dict`` output.

        Args:
            data: Dictionary produced by ``to_dict``

        Returns:
            Concert

        Raises:
            KeyError, TypeError, ValueError: If the dictionary is malformed
        """
        original = data.get('originalEvent')
        return cls(
            id=str(data['id']),
            title=data['title'],
            venue=data.get('venue') or VENUE_TBA,
            date=data.get('date') or DATE_TBA,
            description=data.get('description') or DESCRIPTION_PENDING,
            image=data['image'],
            images=tuple(ConcertImage.from_dict(i) for i in data.get('images') or []),
            links=tuple(ConcertLink.from_dict(l) for l in data.get('links') or []),
            time=data.get('time'),
            duration=data.get('duration'),
            is_placeholder=bool(data.get('isPlaceholder', False)),
            source=data.get('source') or SOURCE_LIVE_SYNC,
            original_event=OriginalEvent.from_dict(original) if original else None,
        )


@dataclass(frozen=True)
class ArchiveRecord:
    """Durable log entry for a concert moved from upcoming to past."""
    id: str
    title: str
    venue: str
    date: str
    image: str
    archived_at: str
    source: str = SOURCE_AUTO_ARCHIVED

    @classmethod
    def from_concert(cls, concert: Concert, archived_at: datetime) -> 'ArchiveRecord':
        return cls(
            id=concert.id,
            title=concert.title,
            venue=concert.venue,
            date=concert.date,
            image=concert.image,
            archived_at=archived_at.isoformat(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'venue': self.venue,
            'date': self.date,
            'image': self.image,
            'archivedAt': self.archived_at,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArchiveRecord':
        return cls(
            id=str(data['id']),
            title=data.get('title', ''),
            venue=data.get('venue', ''),
            date=data.get('date', ''),
            image=data.get('image', ''),
            archived_at=data.get('archivedAt', ''),
            source=data.get('source') or SOURCE_AUTO_ARCHIVED,
        )


@dataclass
class SweepResult:
    """Result of an expiration sweep."""
    moved_count: int
    moved_concerts: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'movedCount': self.moved_count, 'movedConcerts': self.moved_concerts}


class FetchState(str, Enum):
    """Terminal state of one sync engine invocation."""
    CACHED_HIT = 'cached-hit'
    UNCONFIGURED_FALLBACK = 'unconfigured-fallback'
    LIVE_FETCH_SUCCESS = 'live-fetch-success'
    STALE_CACHE_FALLBACK = 'stale-cache-fallback'
    STATIC_FALLBACK = 'static-fallback'


@dataclass
class FetchResult:
    """Concert list together with the tier it came from."""
    concerts: List[Concert]
    state: FetchState

    @property
    def is_stale(self) -> bool:
        return self.state in (FetchState.STALE_CACHE_FALLBACK, FetchState.STATIC_FALLBACK)


@dataclass
class SyncStatus:
    """Snapshot reported by the concert manager."""
    configured: bool
    cache_valid: bool
    last_cached_at: Optional[datetime]
    upcoming_count: int
    past_count: int
    last_upcoming_state: Optional[FetchState] = None
    last_past_state: Optional[FetchState] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'configured': self.configured,
            'cacheValid': self.cache_valid,
            'lastCachedAt': self.last_cached_at.isoformat() if self.last_cached_at else None,
            'upcomingCount': self.upcoming_count,
            'pastCount': self.past_count,
            'lastUpcomingState': self.last_upcoming_state.value if self.last_upcoming_state else None,
            'lastPastState': self.last_past_state.value if self.last_past_state else None,
        }
