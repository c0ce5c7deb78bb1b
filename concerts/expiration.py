"""Moves concerts that have ended from the upcoming list to the past list."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Callable, List, Optional

from processor.dates import get_timezone, parse_event_datetime, parse_legacy_date
from processor.models import Concert, SweepResult
from storage.archive import ConcertArchive
from storage.concert_cache import PAST_CACHE_KEY, ConcertCache, utc_now

logger = logging.getLogger(__name__)

EXPIRY_BUFFER = timedelta(hours=6)
MAX_PAST_CONCERTS = 9


@dataclass
class ConcertBoard:
    """In-memory upcoming and past concert lists."""
    upcoming: List[Concert] = field(default_factory=list)
    past: List[Concert] = field(default_factory=list)


def is_concert_expired(concert: Concert, now: datetime,
                       buffer: timedelta = EXPIRY_BUFFER,
                       tz: Optional[tzinfo] = None) -> bool:
    """
    Check whether a concert has ended.

    With a precise start time the concert counts as ended ``buffer`` after
    it started. Otherwise the display date is parsed heuristically and
    compared to ``now`` without a buffer.

    Args:
        concert: Concert to check
        now: Current aware datetime
        buffer: Assumed concert duration
        tz: Timezone for date-only and display dates

    Returns:
        True if the concert is over
    """
    original = concert.original_event
    start = parse_event_datetime(original.start, tz) if original and original.start else None

    if start is not None:
        return start + buffer < now

    return parse_legacy_date(concert.date, now, tz) < now


class ExpirationSweeper:
    """Reclassifies already loaded concerts; never calls the calendar API."""

    def __init__(self, cache: ConcertCache, archive: ConcertArchive,
                 past_key: str = PAST_CACHE_KEY, max_past: int = MAX_PAST_CONCERTS,
                 buffer: timedelta = EXPIRY_BUFFER, timezone_name: Optional[str] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the sweeper.

        Args:
            cache: Concert cache the updated past list is written to
            archive: Archive receiving every moved concert
            past_key: Cache key of the past list
            max_past: Length cap of the past list
            buffer: Time after start at which a concert counts as over
            timezone_name: Timezone for interpreting display dates
            clock: Returns the current aware datetime
        """
        self.cache = cache
        self.archive = archive
        self.past_key = past_key
        self.max_past = max_past
        self.buffer = buffer
        self.timezone = get_timezone(timezone_name) if timezone_name else None
        self.clock = clock

    def sweep(self, board: ConcertBoard) -> SweepResult:
        """
        Move expired upcoming concerts to the front of the past list.

        The past list is capped at ``max_past`` (oldest entries dropped),
        written to the cache and every moved concert is archived. Running
        it again with nothing newly expired changes nothing.

        Args:
            board: Lists to update; the lists are replaced, not mutated

        Returns:
            SweepResult with the number and summaries of moved concerts
        """
        if not board.upcoming:
            logger.debug("No upcoming concerts loaded, skipping expired check")
            return SweepResult(moved_count=0)

        now = self.clock()
        still_upcoming = []
        newly_expired = []

        # Split upcoming concerts into expired and still upcoming
        for concert in board.upcoming:
            if is_concert_expired(concert, now, self.buffer, self.timezone):
                logger.info(f"Concert expired: {concert.title} on {concert.date}")
                newly_expired.append(concert)
            else:
                still_upcoming.append(concert)

        if not newly_expired:
            logger.debug("No expired concerts found")
            return SweepResult(moved_count=0)

        # Prepend to the past list, dropping duplicates and the oldest entries
        moved_ids = {concert.id for concert in newly_expired}
        remaining_past = [c for c in board.past if c.id not in moved_ids]

        board.upcoming = still_upcoming
        board.past = (newly_expired + remaining_past)[:self.max_past]

        # Persist the past list and archive what moved
        self.cache.write(self.past_key, board.past)
        self.archive.archive(newly_expired)

        logger.info(f"Moved {len(newly_expired)} concerts to past concerts")
        return SweepResult(
            moved_count=len(newly_expired),
            moved_concerts=[{'title': c.title, 'date': c.date} for c in newly_expired],
        )
