"""Date and time helpers for concert display and expiry checks."""
import logging
import re
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'Europe/Stockholm'

DATE_TBA = 'Date TBA'
TIME_TBA = 'Time TBA'
ALL_DAY = 'All Day'

SWEDISH_MONTHS = {
    'januari': 1,
    'februari': 2,
    'mars': 3,
    'april': 4,
    'maj': 5,
    'juni': 6,
    'juli': 7,
    'augusti': 8,
    'september': 9,
    'oktober': 10,
    'november': 11,
    'december': 12,
}
MONTH_NAMES = {index: name for name, index in SWEDISH_MONTHS.items()}

# English names are accepted by the legacy parser as well
ENGLISH_MONTHS = {
    'january': 1, 'february': 2, 'march': 3, 'may': 5, 'june': 6,
    'july': 7, 'august': 8, 'october': 10,
}

TBA_MARKERS = ('tba', 'to be announced')
FAR_FUTURE = datetime(2099, 12, 31, tzinfo=timezone.utc)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_YEAR_PATTERN = re.compile(r'\b(20\d{2})\b')
_DAY_MONTH_YEAR = re.compile(r'^(\d{1,2})\.?\s+([a-zåäö]+)\s+(\d{4})$')
_MONTH_DAY_YEAR = re.compile(r'^([a-zåäö]+)\s+(\d{1,2}),?\s+(\d{4})$')


def get_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA timezone name.

    Args:
        name: Timezone name such as "Europe/Stockholm"

    Returns:
        tzinfo for the name, or UTC when the name is unknown
    """
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return timezone.utc


def is_date_only(value: Optional[str]) -> bool:
    return bool(value) and 'T' not in value


def parse_event_datetime(value: Optional[str], tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """
    Parse a calendar start/end value into an aware datetime.

    Date-only values (all-day events) become midnight in ``tz``; naive
    timestamps are assumed to be in ``tz`` as well.

    Args:
        value: ISO 8601 timestamp or YYYY-MM-DD date
        tz: Timezone for date-only and naive values (default: display timezone)

    Returns:
        Aware datetime, or None if the value is empty or malformed
    """
    if not value:
        return None

    tz = tz or get_timezone(DEFAULT_TIMEZONE)
    text = value.strip()

    try:
        # All-day events carry a bare date
        if is_date_only(text):
            parsed = datetime.strptime(text, '%Y-%m-%d')
            return parsed.replace(tzinfo=tz)

        # fromisoformat rejects "Z" before Python 3.11
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed
    except ValueError:
        logger.debug(f"Could not parse event datetime: {value}")
        return None


def format_date(value: Optional[str], tz: Optional[tzinfo] = None) -> str:
    """
    Format a calendar start value as a Swedish long date ("15 juni 2025").

    Args:
        value: ISO 8601 timestamp or YYYY-MM-DD date
        tz: Display timezone

    Returns:
        Formatted date, DATE_TBA when there is no value, or the raw
        YYYY-MM-DD part when parsing fails
    """
    if not value:
        return DATE_TBA

    tz = tz or get_timezone(DEFAULT_TIMEZONE)
    parsed = parse_event_datetime(value, tz)
    if parsed is None:
        logger.warning(f"Error formatting date: {value}")
        return value.split('T')[0]

    if not is_date_only(value):
        parsed = parsed.astimezone(tz)
    return f"{parsed.day} {MONTH_NAMES[parsed.month]} {parsed.year}"


def format_time(value: Optional[str], tz: Optional[tzinfo] = None) -> str:
    """
    Format the time of day of a calendar start value (24-hour HH:MM).

    Args:
        value: ISO 8601 timestamp or YYYY-MM-DD date
        tz: Display timezone

    Returns:
        "HH:MM", ALL_DAY for date-only values, TIME_TBA otherwise
    """
    if not value:
        return TIME_TBA
    if is_date_only(value):
        return ALL_DAY

    tz = tz or get_timezone(DEFAULT_TIMEZONE)
    parsed = parse_event_datetime(value, tz)
    if parsed is None:
        return TIME_TBA
    return parsed.astimezone(tz).strftime('%H:%M')


def format_duration(start: Optional[str], end: Optional[str]) -> Optional[str]:
    """
    Describe the length of an event as hours and minutes.

    Args:
        start: Precise start timestamp
        end: Precise end timestamp

    Returns:
        "2h 30m", "2h" or "45m"; None unless both values are precise
        timestamps with a positive difference
    """
    if not start or not end or is_date_only(start) or is_date_only(end):
        return None

    start_dt = parse_event_datetime(start)
    end_dt = parse_event_datetime(end)
    if start_dt is None or end_dt is None:
        return None

    # Split whole minutes into hours and minutes
    total_minutes = int((end_dt - start_dt).total_seconds() // 60)
    if total_minutes <= 0:
        return None
    hours, minutes = divmod(total_minutes, 60)

    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return None


def _month_index(name: str) -> Optional[int]:
    name = name.lower()
    if name in SWEDISH_MONTHS:
        return SWEDISH_MONTHS[name]
    if name in ENGLISH_MONTHS:
        return ENGLISH_MONTHS[name]
    # Abbreviations: "jan", "feb", "okt", ...
    for full_name, index in list(SWEDISH_MONTHS.items()) + list(ENGLISH_MONTHS.items()):
        if len(name) >= 3 and full_name.startswith(name):
            return index
    return None


def _parse_full_date(text: str, tz: tzinfo) -> Optional[datetime]:
    match = _DAY_MONTH_YEAR.match(text)
    if match:
        day, month_name, year = match.groups()
    else:
        match = _MONTH_DAY_YEAR.match(text)
        if not match:
            return None
        month_name, day, year = match.groups()

    month = _month_index(month_name)
    if month is None:
        return None
    try:
        return datetime(int(year), month, int(day), tzinfo=tz)
    except ValueError:
        return None


def parse_legacy_date(date_string: Optional[str], now: datetime,
                      tz: Optional[tzinfo] = None) -> datetime:
    """
    Best-effort parse of a human-formatted concert date.

    Used for static and legacy concerts that carry no precise timestamp.
    Order of attempts:

    1. A TBA marker means "infinitely future".
    2. "15 juni 2025", "9 Februari 2024" or "June 15, 2025".
    3. An embedded year different from the current year: end of that year
       when it is in the past, start of it when in the future.
    4. A generic ISO parse ("2025-06-15", "2024").
    5. The epoch, so unparseable dates count as already passed.

    Args:
        date_string: Display date of the concert
        now: Current time, used for the year comparison
        tz: Timezone the date is interpreted in

    Returns:
        Aware datetime
    """
    if not date_string:
        return EPOCH

    tz = tz or get_timezone(DEFAULT_TIMEZONE)
    text = ' '.join(date_string.strip().lower().split())

    if any(marker in text for marker in TBA_MARKERS):
        return FAR_FUTURE

    parsed = _parse_full_date(text, tz)
    if parsed is not None:
        return parsed

    year_match = _YEAR_PATTERN.search(text)
    if year_match:
        year = int(year_match.group(1))
        current_year = now.astimezone(tz).year
        if year < current_year:
            return datetime(year, 12, 31, tzinfo=tz)
        if year > current_year:
            return datetime(year, 1, 1, tzinfo=tz)

    try:
        if re.fullmatch(r'\d{4}', text):
            return datetime(int(text), 1, 1, tzinfo=tz)
        generic = datetime.fromisoformat(text)
        return generic if generic.tzinfo else generic.replace(tzinfo=tz)
    except ValueError:
        logger.debug(f"Failed to parse concert date: {date_string}")

    return EPOCH