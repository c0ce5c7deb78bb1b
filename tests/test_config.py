"""Unit tests for SyncConfig."""
from config import DEFAULT_KEYWORDS, DEFAULT_TAG_FILTER, SyncConfig
from processor.concert_processor import ConcertProcessor


class TestSyncConfig:
    """Test cases for environment configuration."""

    def test_defaults(self):
        config = SyncConfig.from_env({})

        assert not config.is_configured
        assert config.concert_tag_filter == '[CONCERT]'
        assert config.concert_keywords == ('concert', 'konsert', 'performance', 'recital', 'event')
        assert config.max_results_display == 5
        assert config.past_concerts_limit == 9
        assert config.refresh_interval_minutes == 1440
        assert config.expired_check_interval_minutes == 1440
        assert config.images_enabled is True
        assert config.drive_parent_folder_id is None
        assert config.display_timezone == 'Europe/Stockholm'
        assert config.table_name is None

    def test_from_env(self):
        config = SyncConfig.from_env({
            'GOOGLE_CALENDAR_API_KEY': 'key',
            'GOOGLE_CALENDAR_ID': 'band@group.calendar.google.com',
            'CONCERT_TAG_FILTER': '(GIG)',
            'CONCERT_KEYWORDS': 'gig, spelning ,',
            'MAX_CONCERTS_DISPLAY': '3',
            'ENABLE_CONCERT_IMAGES': 'no',
            'GOOGLE_DRIVE_PARENT_FOLDER_ID': 'folder',
            'TABLE_NAME': 'concert-cache',
            'LOG_LEVEL': 'DEBUG',
        })

        assert config.is_configured
        assert config.concert_tag_filter == '(GIG)'
        assert config.concert_keywords == ('gig', 'spelning')
        assert config.max_results_display == 3
        assert config.images_enabled is False
        assert config.drive_parent_folder_id == 'folder'
        assert config.table_name == 'concert-cache'
        assert config.log_level == 'DEBUG'

    def test_missing_calendar_id_is_unconfigured(self):
        assert not SyncConfig.from_env({'GOOGLE_CALENDAR_API_KEY': 'key'}).is_configured

    def test_invalid_integer_uses_default(self):
        config = SyncConfig.from_env({'PAST_CONCERTS_LIMIT': 'nine'})
        assert config.past_concerts_limit == 9

    def test_boolean_values(self):
        for value in ('1', 'true', 'YES', 'on'):
            assert SyncConfig.from_env({'ENABLE_CONCERT_IMAGES': value}).images_enabled
        assert not SyncConfig.from_env({'ENABLE_CONCERT_IMAGES': 'off'}).images_enabled

    def test_processor_uses_config_defaults(self):
        config = SyncConfig()
        processor = ConcertProcessor()

        assert config.concert_tag_filter == DEFAULT_TAG_FILTER
        assert config.concert_keywords == DEFAULT_KEYWORDS
        assert processor.tag_filter == DEFAULT_TAG_FILTER
        assert tuple(processor.keywords) == DEFAULT_KEYWORDS
