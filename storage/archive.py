"""Append-only archive of concerts moved from upcoming to past."""
import json
import logging
from datetime import datetime
from typing import Callable, Iterable, List

from processor.models import ArchiveRecord, Concert
from storage.cache_store import CacheStore, StorageError
from storage.concert_cache import utc_now

logger = logging.getLogger(__name__)

ARCHIVE_KEY = 'concerts_archive'


class ConcertArchive:
    """Archive records stored newest first under one key, never expired."""

    def __init__(self, store: CacheStore, key: str = ARCHIVE_KEY,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.key = key
        self.clock = clock

    def records(self) -> List[ArchiveRecord]:
        """
        Load the archive, newest first.

        Returns:
            List of ArchiveRecord objects (empty when absent or unreadable)
        """
        try:
            raw = self.store.get(self.key)
        except StorageError as e:
            logger.warning(f"Failed to read concert archive: {e}")
            return []
        if not raw:
            return []

        # Parse records, skipping malformed ones
        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring malformed concert archive: {e}")
            return []
        if not isinstance(items, list):
            return []

        records = []
        for item in items:
            try:
                records.append(ArchiveRecord.from_dict(item))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed archive record: {e}")
        return records

    def archive(self, concerts: Iterable[Concert]) -> int:
        """
        Add concerts to the archive, skipping IDs already present.

        Args:
            concerts: Concerts to archive

        Returns:
            Number of records added
        """
        # Load existing records and index them by ID
        records = self.records()
        known_ids = {record.id for record in records}
        archived_at = self.clock()
        added = 0

        # Add new records at the front
        for concert in concerts:
            if concert.id in known_ids:
                continue
            records.insert(0, ArchiveRecord.from_concert(concert, archived_at))
            known_ids.add(concert.id)
            added += 1
            logger.info(f"Archived: {concert.title}")

        if added == 0:
            return 0

        try:
            self.store.set(self.key, json.dumps([r.to_dict() for r in records], ensure_ascii=False))
        except StorageError as e:
            logger.error(f"Error archiving concerts: {e}")
            return 0

        return added
