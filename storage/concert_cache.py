"""Time-limited cache of concert lists."""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from processor.models import Concert
from storage.cache_store import CacheStore, StorageError

logger = logging.getLogger(__name__)

UPCOMING_CACHE_KEY = 'concerts_cache'
PAST_CACHE_KEY = 'past_concerts_cache'
DEFAULT_EXPIRY = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConcertCache:
    """Concert lists with fetch timestamps, stored per cache key.

    Each key holds ``{"items": [...], "fetchedAt": <epoch ms>}``. Entries
    are never removed on expiry; an expired entry is still returned by
    ``read`` so it can serve as a fallback.
    """

    def __init__(self, store: CacheStore, expiry: timedelta = DEFAULT_EXPIRY,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the cache.

        Args:
            store: Backing key/value store
            expiry: How long an entry counts as fresh (default: 24 hours)
            clock: Returns the current aware datetime
        """
        self.store = store
        self.expiry = expiry
        self.clock = clock

    def write(self, key: str, concerts: Sequence[Concert]) -> bool:
        """
        Store a concert list with the current time.

        Args:
            key: Cache key
            concerts: Concerts to store

        Returns:
            True if the list was stored, False if the store failed
        """
        # Items and timestamp share one value
        payload = {
            'items': [concert.to_dict() for concert in concerts],
            'fetchedAt': int(self.clock().timestamp() * 1000),
        }
        try:
            self.store.set(key, json.dumps(payload, ensure_ascii=False))
        except (StorageError, TypeError, ValueError) as e:
            logger.warning(f"Failed to cache concert data under '{key}': {e}")
            return False
        logger.debug(f"Cached {len(concerts)} concerts under '{key}'")
        return True

    def _read_payload(self, key: str) -> Optional[dict]:
        try:
            raw = self.store.get(key)
        except StorageError as e:
            logger.warning(f"Failed to retrieve cached data for '{key}': {e}")
            return None
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring malformed cache entry '{key}': {e}")
            return None
        return payload if isinstance(payload, dict) else None

    def read(self, key: str) -> Optional[List[Concert]]:
        """
        Load a cached concert list regardless of its age.

        Args:
            key: Cache key

        Returns:
            List of Concert objects, or None if absent or malformed
        """
        payload = self._read_payload(key)
        if payload is None or not isinstance(payload.get('items'), list):
            return None
        try:
            return [Concert.from_dict(item) for item in payload['items']]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed cached concerts under '{key}': {e}")
            return None

    def fetched_at(self, key: str) -> Optional[datetime]:
        """
        Time the entry under ``key`` was written.

        Args:
            key: Cache key

        Returns:
            Aware UTC datetime, or None if there is no usable entry
        """
        payload = self._read_payload(key)
        if payload is None:
            return None
        timestamp = payload.get('fetchedAt')
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None
        try:
            return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    def is_valid(self, key: str) -> bool:
        """True if the entry under ``key`` is younger than the expiry window."""
        fetched = self.fetched_at(key)
        if fetched is None:
            return False
        return (self.clock() - fetched) < self.expiry

    def force_invalidate(self, key: str) -> None:
        """Remove the entry under ``key``."""
        try:
            self.store.delete(key)
        except StorageError as e:
            logger.warning(f"Failed to clear cache entry '{key}': {e}")
            return
        logger.info(f"Cleared cache entry '{key}'")
