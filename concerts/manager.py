"""Concert manager: owns the concert lists, the sync engine and the timers."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import httpx

from calendar_api.drive_images import DriveImageFinder
from calendar_api.google_calendar import GoogleCalendarClient
from concerts.expiration import ConcertBoard, ExpirationSweeper
from concerts.scheduler import Scheduler
from concerts.sync_engine import CalendarSyncEngine
from config import SyncConfig
from processor.concert_processor import ConcertProcessor
from processor.models import Concert, FetchResult, FetchState, SweepResult, SyncStatus
from storage.archive import ConcertArchive
from storage.cache_store import CacheStore, JsonFileCacheStore
from storage.concert_cache import ConcertCache, utc_now
from storage.dynamodb_store import DynamoDBCacheStore

logger = logging.getLogger(__name__)

AUTO_REFRESH_JOB = 'auto-refresh'
EXPIRED_CHECK_JOB = 'expired-check'


def build_store(config: SyncConfig) -> CacheStore:
    """DynamoDB store when a table is configured, JSON file store otherwise."""
    if config.table_name:
        return DynamoDBCacheStore(config.table_name)
    return JsonFileCacheStore(config.cache_path)


class ConcertManager:
    """Entry point for presentation adapters.

    The synchronous methods use the blocking HTTP client and suit one-shot
    callers such as the Lambda handler. The auto-refresh timer uses
    ``refresh_async`` so it never blocks the event loop it runs on.
    """

    def __init__(self, engine: CalendarSyncEngine, sweeper: ExpirationSweeper,
                 archive: ConcertArchive, past_limit: int = 9,
                 refresh_interval: timedelta = timedelta(minutes=1440),
                 expired_check_interval: timedelta = timedelta(minutes=1440),
                 scheduler: Optional[Scheduler] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.engine = engine
        self.sweeper = sweeper
        self.archive = archive
        self.past_limit = past_limit
        self.refresh_interval = refresh_interval
        self.expired_check_interval = expired_check_interval
        self.scheduler = scheduler
        self.http_client = http_client
        self.board = ConcertBoard()
        self.last_upcoming_state: Optional[FetchState] = None
        self.last_past_state: Optional[FetchState] = None
        self.last_sweep: Optional[SweepResult] = None

    @classmethod
    def from_config(cls, config: SyncConfig, store: Optional[CacheStore] = None,
                    clock: Callable[[], datetime] = utc_now) -> 'ConcertManager':
        """
        Wire up all components from configuration.

        Args:
            config: Service configuration
            store: Key/value store (default: chosen by ``build_store``)
            clock: Returns the current aware datetime

        Returns:
            ConcertManager
        """
        store = store if store is not None else build_store(config)

        # API clients only when credentials are present
        client = None
        finder = None
        if config.is_configured:
            client = GoogleCalendarClient(config.api_key, config.calendar_id,
                                          timeout=config.timeout_seconds)
            if config.drive_parent_folder_id and config.images_enabled:
                finder = DriveImageFinder(config.api_key, config.drive_parent_folder_id,
                                          timeout=config.timeout_seconds)

        # Instantiate components
        processor = ConcertProcessor(
            tag_filter=config.concert_tag_filter,
            keywords=config.concert_keywords,
            timezone_name=config.display_timezone,
            images_enabled=config.images_enabled,
            image_finder=finder,
        )
        cache = ConcertCache(store, clock=clock)
        archive = ConcertArchive(store, clock=clock)
        engine = CalendarSyncEngine(client, processor, cache,
                                    max_results_display=config.max_results_display,
                                    clock=clock)
        sweeper = ExpirationSweeper(cache, archive, max_past=config.past_concerts_limit,
                                    timezone_name=config.display_timezone, clock=clock)
        return cls(
            engine, sweeper, archive,
            past_limit=config.past_concerts_limit,
            refresh_interval=timedelta(minutes=config.refresh_interval_minutes),
            expired_check_interval=timedelta(minutes=config.expired_check_interval_minutes),
        )

    @property
    def upcoming_concerts(self) -> List[Concert]:
        return list(self.board.upcoming)

    @property
    def past_concerts(self) -> List[Concert]:
        return list(self.board.past)

    def load_concerts(self) -> List[Concert]:
        """
        Fetch upcoming concerts, then sweep out any that have ended.

        Returns:
            Current upcoming concerts
        """
        return self._apply_upcoming(self.engine.fetch_upcoming())

    async def refresh_async(self) -> List[Concert]:
        """
        Non-blocking ``load_concerts`` for use on an event loop.

        Returns:
            Current upcoming concerts
        """
        return self._apply_upcoming(await self.engine.fetch_upcoming_async(self.http_client))

    def _apply_upcoming(self, result: FetchResult) -> List[Concert]:
        self.last_upcoming_state = result.state
        self.board.upcoming = list(result.concerts)
        self.check_and_move_expired_concerts()
        logger.info(f"Loaded {len(self.board.upcoming)} upcoming concerts ({result.state.value})")
        return self.upcoming_concerts

    def load_cached_concerts(self) -> None:
        """Fill both lists from the cache whatever its age, without calling the API."""
        cache = self.engine.cache
        self.board.upcoming = cache.read(self.engine.upcoming_key) or []
        self.board.past = cache.read(self.engine.past_key) or []
        logger.info(
            f"Loaded {len(self.board.upcoming)} upcoming and "
            f"{len(self.board.past)} past concerts from cache"
        )

    def load_past_concerts(self, limit: Optional[int] = None) -> List[Concert]:
        result = self.engine.fetch_past(limit or self.past_limit)
        self.last_past_state = result.state
        self.board.past = list(result.concerts)
        logger.info(f"Loaded {len(self.board.past)} past concerts ({result.state.value})")
        return self.past_concerts

    def fetch_upcoming_concerts(self) -> List[Concert]:
        return self.load_concerts()

    def fetch_past_concerts(self, limit: Optional[int] = None) -> List[Concert]:
        return self.load_past_concerts(limit)

    def force_refresh(self) -> List[Concert]:
        """
        Bypass the cache and reload upcoming concerts.

        Returns:
            Current upcoming concerts
        """
        result = self.engine.force_refresh()
        self.last_upcoming_state = result.state
        self.board.upcoming = list(result.concerts)
        return self.upcoming_concerts

    def check_and_move_expired_concerts(self) -> SweepResult:
        self.last_sweep = self.sweeper.sweep(self.board)
        return self.last_sweep

    def sync(self) -> SweepResult:
        """
        Load past then upcoming concerts, sweeping expired ones into the past list.

        Returns:
            SweepResult of the sweep run by the upcoming load
        """
        self.load_past_concerts()
        self.load_concerts()
        return self.last_sweep

    def get_status(self) -> SyncStatus:
        cache = self.engine.cache
        key = self.engine.upcoming_key
        return SyncStatus(
            configured=self.engine.is_configured,
            cache_valid=cache.is_valid(key),
            last_cached_at=cache.fetched_at(key),
            upcoming_count=len(self.board.upcoming),
            past_count=len(self.board.past),
            last_upcoming_state=self.last_upcoming_state,
            last_past_state=self.last_past_state,
        )

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Scheduler:
        """
        Start the auto-refresh and expired-check timers.

        Must be called with a loop, or from inside a running loop.

        Args:
            loop: Event loop to schedule on

        Returns:
            The scheduler holding both jobs
        """
        if self.scheduler is None:
            self.scheduler = Scheduler(loop)
        self.scheduler.every(AUTO_REFRESH_JOB, self.refresh_interval.total_seconds(),
                             self.refresh_async)
        self.scheduler.every(EXPIRED_CHECK_JOB, self.expired_check_interval.total_seconds(),
                             self.check_and_move_expired_concerts)
        return self.scheduler

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.cancel_all()
            logger.info("Concert manager timers stopped")
