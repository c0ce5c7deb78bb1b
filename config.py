"""Configuration for the concert sync service."""
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TAG_FILTER = '[CONCERT]'
DEFAULT_KEYWORDS = ('concert', 'konsert', 'performance', 'recital', 'event')
TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in TRUE_VALUES


def _get_list(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = env.get(name)
    if not value:
        return default
    items = tuple(item.strip() for item in value.split(',') if item.strip())
    return items or default


@dataclass
class SyncConfig:
    """Settings for calendar access, caching and scheduling."""
    api_key: str = ''
    calendar_id: str = ''
    concert_tag_filter: str = DEFAULT_TAG_FILTER
    concert_keywords: Tuple[str, ...] = field(default=DEFAULT_KEYWORDS)
    max_results_display: int = 5
    past_concerts_limit: int = 9
    refresh_interval_minutes: int = 1440
    expired_check_interval_minutes: int = 1440
    images_enabled: bool = True
    drive_parent_folder_id: Optional[str] = None
    display_timezone: str = 'Europe/Stockholm'
    cache_path: str = '/tmp/concert-cache.json'
    table_name: Optional[str] = None
    timeout_seconds: int = 30
    log_level: str = 'INFO'

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.calendar_id)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'SyncConfig':
        """
        Read configuration from environment variables.

        Args:
            env: Mapping to read from (default: os.environ)

        Returns:
            SyncConfig with defaults for anything unset or malformed
        """
        env = os.environ if env is None else env
        return cls(
            api_key=env.get('GOOGLE_CALENDAR_API_KEY', ''),
            calendar_id=env.get('GOOGLE_CALENDAR_ID', ''),
            concert_tag_filter=env.get('CONCERT_TAG_FILTER') or DEFAULT_TAG_FILTER,
            concert_keywords=_get_list(env, 'CONCERT_KEYWORDS', DEFAULT_KEYWORDS),
            max_results_display=_get_int(env, 'MAX_CONCERTS_DISPLAY', 5),
            past_concerts_limit=_get_int(env, 'PAST_CONCERTS_LIMIT', 9),
            refresh_interval_minutes=_get_int(env, 'API_REFRESH_INTERVAL', 1440),
            expired_check_interval_minutes=_get_int(env, 'EXPIRED_CHECK_INTERVAL', 1440),
            images_enabled=_get_bool(env, 'ENABLE_CONCERT_IMAGES', True),
            drive_parent_folder_id=env.get('GOOGLE_DRIVE_PARENT_FOLDER_ID') or None,
            display_timezone=env.get('DISPLAY_TIMEZONE') or 'Europe/Stockholm',
            cache_path=env.get('CACHE_PATH') or '/tmp/concert-cache.json',
            table_name=env.get('TABLE_NAME') or None,
            timeout_seconds=_get_int(env, 'TIMEOUT_SECONDS', 30),
            log_level=env.get('LOG_LEVEL') or 'INFO',
        )
