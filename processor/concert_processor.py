"""Concert processor for classifying and normalizing calendar events."""
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

from bs4 import BeautifulSoup

from calendar_api.drive_images import (
    DEFAULT_THUMBNAIL_SIZE, DriveImageFinder, images_from_attachments
)
from config import DEFAULT_KEYWORDS, DEFAULT_TAG_FILTER
from processor.dates import (
    DEFAULT_TIMEZONE, format_date, format_duration, format_time, get_timezone
)
from processor.link_extractor import extract_images, extract_links
from processor.models import (
    DESCRIPTION_PENDING, SOURCE_LIVE_SYNC, VENUE_TBA, Concert, ConcertImage,
    OriginalEvent, RawCalendarEvent
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = 'Concert'
PLACEHOLDER_URL = 'https://via.placeholder.com/400x300/f0f0f0/666?text={text}'

_PARENTHESIZED_PREFIX = re.compile(r'^\s*\([^)]+\)')
_TIME_PREFIX = re.compile(r'^\d{1,2}:\d{2}\s*-?\s*')
_AT_VENUE = re.compile(r'^(.+?)\s+at\s+([^,\-]+)', re.IGNORECASE)


def placeholder_image_url(title: str) -> str:
    """Generated placeholder image URL showing ``title``."""
    return PLACEHOLDER_URL.format(text=quote(title or DEFAULT_TITLE))


class ConcertProcessor:
    """Decides which calendar events are concerts and builds Concert records."""

    MAX_DESCRIPTION_LENGTH = 200

    def __init__(self, tag_filter: str = DEFAULT_TAG_FILTER,
                 keywords: Sequence[str] = DEFAULT_KEYWORDS,
                 timezone_name: str = DEFAULT_TIMEZONE,
                 images_enabled: bool = True,
                 image_finder: Optional[DriveImageFinder] = None,
                 thumbnail_size: int = DEFAULT_THUMBNAIL_SIZE):
        """
        Initialize the processor.

        Args:
            tag_filter: Literal marker flagging an event as a concert
            keywords: Words that also flag an event as a concert
            timezone_name: Display timezone for dates and times
            images_enabled: Resolve images (otherwise placeholders only)
            image_finder: Optional Drive folder search used as a last resort
            thumbnail_size: Width hint for Drive thumbnails
        """
        self.tag_filter = tag_filter or DEFAULT_TAG_FILTER
        self.keywords = tuple(k.lower() for k in keywords if k)
        self.timezone = get_timezone(timezone_name)
        self.images_enabled = images_enabled
        self.image_finder = image_finder
        self.thumbnail_size = thumbnail_size

        tag_words = '|'.join(re.escape(k) for k in self.keywords) or 'concert'
        self._tag_prefixes = [
            re.compile(r'^\s*' + re.escape(self.tag_filter) + r'\s*', re.IGNORECASE),
            re.compile(r'^\s*[\[(]\s*(?:' + tag_words + r')\s*[\])]\s*', re.IGNORECASE),
        ]

    def is_concert(self, event: RawCalendarEvent) -> bool:
        """
        Check whether an event qualifies as a concert.

        An event qualifies when its title or description contains the tag
        marker or one of the keywords (case-insensitive), or when its title
        starts with a parenthesized tag such as "(Konsert)".

        Args:
            event: Raw calendar event

        Returns:
            True if the event is a concert
        """
        if not event.title:
            return False

        title = event.title.lower()
        description = (event.description or '').lower()
        tag = self.tag_filter.lower()

        # Tag marker, then keywords, then a "(Tag)" title prefix
        if tag in title or tag in description:
            return True
        if any(keyword in title or keyword in description for keyword in self.keywords):
            return True
        return bool(_PARENTHESIZED_PREFIX.match(event.title))

    def filter_concert_events(self, events: Iterable[RawCalendarEvent]) -> List[RawCalendarEvent]:
        return [event for event in events if self.is_concert(event)]

    def process_events(self, raw_events: Iterable[RawCalendarEvent]) -> List[Concert]:
        """
        Filter and transform raw calendar events.

        Args:
            raw_events: Raw calendar events

        Returns:
            List of Concert objects, in input order
        """
        raw_events = list(raw_events)
        concert_events = self.filter_concert_events(raw_events)
        concerts = self.transform_events(concert_events)

        logger.info(
            f"Processed {len(concerts)} concerts out of "
            f"{len(raw_events)} total events"
        )
        return concerts

    def transform_events(self, events: Iterable[RawCalendarEvent],
                         searched_images: Optional[Dict[str, List[ConcertImage]]] = None
                         ) -> List[Concert]:
        """
        Transform concert events, skipping any that fail.

        Args:
            events: Events already known to be concerts
            searched_images: Drive search results by event ID, fetched
                ahead of time; events missing from it are not searched

        Returns:
            List of Concert objects
        """
        concerts = []
        for event in events:
            try:
                if searched_images is None:
                    concerts.append(self.transform_event(event))
                else:
                    concerts.append(self.transform_event(event, searched_images.get(event.id, [])))
            except Exception as e:
                logger.warning(f"Failed to process event '{event.title}': {e}")
                continue
        return concerts

    def transform_event(self, event: RawCalendarEvent,
                        searched: Optional[List[ConcertImage]] = None) -> Concert:
        """
        Build a Concert from a single calendar event.

        Args:
            event: Raw calendar event
            searched: Drive search result to use instead of querying the finder

        Returns:
            Concert object
        """
        # Resolve display fields
        title, venue = self.extract_title_and_venue(event)
        images, primary = self.resolve_images(event, title, searched)

        return Concert(
            id=f"calendar-{event.id}",
            title=title,
            venue=venue,
            date=format_date(event.start, self.timezone),
            time=format_time(event.start, self.timezone),
            duration=format_duration(event.start, event.end),
            description=self.clean_description(event.description),
            image=primary,
            images=tuple(images),
            links=tuple(self._safe_links(event.description)),
            is_placeholder=False,
            source=SOURCE_LIVE_SYNC,
            original_event=OriginalEvent.from_raw(event),
        )

    def clean_title(self, title: Optional[str]) -> str:
        """
        Remove a leading tag marker and a leading "HH:MM" time.

        Args:
            title: Raw event title

        Returns:
            Cleaned title, "Concert" if nothing is left
        """
        cleaned = (title or '').strip()

        # Strip tag markers, then a leading time
        for pattern in self._tag_prefixes:
            cleaned = pattern.sub('', cleaned, count=1)
        cleaned = _TIME_PREFIX.sub('', cleaned, count=1)
        return cleaned.strip() or DEFAULT_TITLE

    def extract_title_and_venue(self, event: RawCalendarEvent) -> Tuple[str, str]:
        """
        Work out display title and venue.

        The location's first comma-separated part wins. Without a location
        a "<title> at <venue>" title is split in two.

        Args:
            event: Raw calendar event

        Returns:
            Tuple of (title, venue)
        """
        title = self.clean_title(event.title)

        # Prefer the first part of the location
        if event.location and event.location.strip():
            venue = event.location.split(',')[0].strip()
            return title, venue or VENUE_TBA

        # Fall back to "<title> at <venue>"
        match = _AT_VENUE.match(title)
        if match:
            venue = match.group(2).strip()
            head = match.group(1).strip()
            if venue:
                return head or title, venue

        return title, VENUE_TBA

    def clean_description(self, description: Optional[str]) -> str:
        """
        Strip HTML, decode entities, collapse whitespace and truncate.

        Args:
            description: Raw event description

        Returns:
            Plain text of at most MAX_DESCRIPTION_LENGTH characters
        """
        if not description:
            return DESCRIPTION_PENDING

        try:
            text = BeautifulSoup(description, 'html.parser').get_text(' ')
        except Exception as e:
            logger.debug(f"Falling back to regex tag stripping: {e}")
            text = re.sub(r'<[^>]*>', ' ', description)

        # Collapse whitespace and truncate to maximum length
        cleaned = ' '.join(text.split())
        if len(cleaned) > self.MAX_DESCRIPTION_LENGTH:
            return cleaned[:self.MAX_DESCRIPTION_LENGTH - 3] + '...'
        return cleaned or DESCRIPTION_PENDING

    def resolve_images(self, event: RawCalendarEvent, title: str,
                       searched: Optional[List[ConcertImage]] = None
                       ) -> Tuple[List[ConcertImage], str]:
        """
        Collect images for an event and choose the primary image URL.

        Order: image attachments, images in the description, Drive folder
        search (when configured), generated placeholder.

        Args:
            event: Raw calendar event
            title: Cleaned title, used for search and the placeholder
            searched: Drive search result already fetched for this event

        Returns:
            Tuple of (images, primary image URL)
        """
        images: List[ConcertImage] = []

        if self.images_enabled:
            images = self._local_images(event, title)

            if not images and searched is not None:
                images = list(searched)
            elif not images and self.image_finder is not None:
                images = self.image_finder.find_images(title)

        # First image is the primary one, otherwise a placeholder
        if images:
            return images, images[0].url

        logger.debug(f"Using placeholder image for event: {title}")
        return [], placeholder_image_url(title)

    def needs_image_search(self, event: RawCalendarEvent) -> bool:
        """True if the Drive finder would be asked for this event's images."""
        if not self.images_enabled or self.image_finder is None:
            return False
        title, _ = self.extract_title_and_venue(event)
        return not self._local_images(event, title)

    def _local_images(self, event: RawCalendarEvent, title: str) -> List[ConcertImage]:
        # Attachments first, then images referenced in the description
        images = images_from_attachments(event.attachments, self.thumbnail_size)
        if images:
            logger.debug(f"Using {len(images)} attachment images for '{title}'")
            return images
        if event.description:
            try:
                return extract_images(event.description)
            except Exception as e:
                logger.debug(f"Could not extract description images for '{title}': {e}")
        return []

    def _safe_links(self, description: Optional[str]):
        try:
            return extract_links(description)
        except Exception as e:
            logger.debug(f"Could not extract links: {e}")
            return []
