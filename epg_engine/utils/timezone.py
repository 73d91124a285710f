"""
Timestamp handling for guide data

Every start/end value in the engine goes through this module: XMLTV
stamps, ISO-8601 text and the canonical millisecond UTC form.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import re

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

# YYYYMMDDhhmmss with an optional signed 4-digit UTC offset
XMLTV_TIME_PATTERN = re.compile(
    r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(?:\s*([+-]\d{4}))?"
)


class DateFormatError(ValueError):
    """Timestamp text that no supported grammar accepts"""


def _normalize_iso8601_string(date_str: str) -> str:
    """Spell a trailing Z as +00:00 for datetime.fromisoformat()"""
    return date_str.replace('Z', '+00:00') if date_str.endswith('Z') else date_str


def parse_iso8601_to_utc(date_str: str) -> datetime:
    """
    Read an ISO-8601 instant as an aware UTC datetime

    Naive values are taken as UTC.

    Raises:
        DateFormatError: If date_str is not ISO-8601
    """
    try:
        normalized = _normalize_iso8601_string(date_str.strip())
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError) as e:
        raise DateFormatError(f"Not an ISO-8601 instant: {date_str!r}") from e


def parse_generic_to_utc(date_str: str) -> datetime:
    """
    Best-effort parsing for timestamps outside the XMLTV grammar.

    Tries ISO8601 first, then dateutil ('2025/01/01 10:00:00',
    '2025-01-01 10:00:00 UTC', 'Wed, 01 Jan 2025 10:00:00 +0000'). Naive results
    are taken as UTC.

    Raises:
        DateFormatError: If no known format matches
    """
    try:
        return parse_iso8601_to_utc(date_str)
    except DateFormatError:
        pass

    try:
        dt = dateutil_parser.parse(date_str)
    except (ValueError, OverflowError) as e:
        raise DateFormatError(f"Unrecognized datetime format: '{date_str}'") from e

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_xmltv_time(time_str: str) -> datetime:
    """
    Convert XMLTV time format to a UTC datetime

    The offset '+HHMM' is rewritten as '+HH:MM' onto the ISO8601 local literal,
    so the same literal under different offsets yields different instants.
    A missing offset means UTC. Anything outside the grammar goes through
    parse_generic_to_utc().

    Args:
        time_str: XMLTV time like '20080715003000 -0600'

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        DateFormatError: If the value cannot be interpreted at all
    """
    if not time_str:
        raise DateFormatError("Empty XMLTV time")

    match = XMLTV_TIME_PATTERN.match(time_str.strip())
    if not match:
        return parse_generic_to_utc(time_str)

    year, month, day, hour, minute, second, tz_part = match.groups()
    iso = f"{year}-{month}-{day}T{hour}:{minute}:{second}"
    iso += f"{tz_part[:3]}:{tz_part[3:]}" if tz_part else "Z"

    return parse_iso8601_to_utc(iso)


def format_utc_instant(dt: datetime) -> str:
    """
    Serialize a datetime as the canonical guide instant

    Returns:
        ISO8601 UTC string with millisecond precision, e.g. '2025-01-01T10:00:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    utc = dt.astimezone(timezone.utc)
    return utc.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def to_utc_datetime(value: str | datetime | None) -> datetime | None:
    """
    Interpret a stored start/end value as a UTC datetime

    Returns:
        Timezone-aware datetime in UTC, or None when the value is unusable
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if not value.strip():
        return None

    try:
        return parse_generic_to_utc(value)
    except DateFormatError:
        return None


def is_valid_timezone(tz_name: str) -> bool:
    """Check whether tz_name is 'UTC' or a known IANA zone"""
    if tz_name == "UTC":
        return True
    try:
        ZoneInfo(tz_name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def get_zone(tz_name: str) -> timezone | ZoneInfo:
    """Resolve a timezone name to a tzinfo"""
    if tz_name == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


def convert_to_timezone(utc_time_str: str, target_tz: str) -> str:
    """
    Render a stored instant in another timezone

    UTC output keeps the canonical Z form; other zones carry their offset,
    e.g. 2025-07-01T11:00:00.000+01:00 for Europe/London.
    """
    dt = parse_iso8601_to_utc(utc_time_str)

    if target_tz == "UTC":
        return format_utc_instant(dt)

    return dt.astimezone(ZoneInfo(target_tz)).isoformat(timespec='milliseconds')
