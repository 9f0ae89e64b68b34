"""Timestamp parsing and timezone resolution utilities for zerocal."""

from __future__ import annotations

import datetime
import logging
import os
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

# Fallback for events that carry no timezone and for naive timestamps
DEFAULT_TIMEZONE = "UTC"

# Obsolete IANA names and common Windows names seen on synced calendars
TZ_ALIAS_MAP: dict[str, str] = {
    "US/Pacific": "America/Los_Angeles",
    "US/Mountain": "America/Denver",
    "US/Central": "America/Chicago",
    "US/Eastern": "America/New_York",
    "US/Alaska": "America/Anchorage",
    "US/Hawaii": "Pacific/Honolulu",
    "US/Arizona": "America/Phoenix",
    "GMT": "UTC",
    "Z": "UTC",
    "Etc/UTC": "UTC",
    "Etc/GMT": "UTC",
    "Universal": "UTC",
    "Zulu": "UTC",
    "Asia/Calcutta": "Asia/Kolkata",
    "Asia/Rangoon": "Asia/Yangon",
    "America/Godthab": "America/Nuuk",
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "GMT Standard Time": "Europe/London",
    "W. Europe Standard Time": "Europe/Berlin",
    "Romance Standard Time": "Europe/Paris",
    "India Standard Time": "Asia/Kolkata",
    "Tokyo Standard Time": "Asia/Tokyo",
    "AUS Eastern Standard Time": "Australia/Sydney",
}


def get_default_timezone(fallback: str = DEFAULT_TIMEZONE) -> str:
    """Return the configured default timezone name.

    Reads ZEROCAL_DEFAULT_TIMEZONE and validates it; an unknown name is
    logged and replaced by the fallback.
    """
    configured = os.environ.get("ZEROCAL_DEFAULT_TIMEZONE", "").strip()
    if not configured:
        return fallback

    name = TZ_ALIAS_MAP.get(configured, configured)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid ZEROCAL_DEFAULT_TIMEZONE=%r; using %s", configured, fallback)
        return fallback
    return name


@lru_cache(maxsize=128)
def resolve_timezone(name: str | None, fallback: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """Resolve a timezone name (IANA, alias or Windows name) to a ZoneInfo.

    Unknown names are logged and resolved to the fallback zone so that one
    badly-labelled event still expands on a sensible clock.
    """
    if not name:
        return ZoneInfo(fallback)

    iana = TZ_ALIAS_MAP.get(name.strip(), name.strip())
    try:
        return ZoneInfo(iana)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; falling back to %s", name, fallback)
        return ZoneInfo(fallback)


def ensure_timezone_aware(
    dt: datetime.datetime, tz: datetime.tzinfo | None = datetime.UTC
) -> datetime.datetime:
    """Attach tz to a naive datetime; aware datetimes are returned unchanged."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt


def is_date_only(value: str) -> bool:
    """Check whether a timestamp string names a calendar date without a time."""
    text = value.strip()
    return "T" not in text.upper() and " " not in text and len(text) in (8, 10)


def parse_timestamp(
    value: str | datetime.datetime | datetime.date,
    tz: datetime.tzinfo | None = datetime.UTC,
) -> datetime.datetime:
    """Parse a timestamp into a datetime.

    Accepts ISO-8601 extended ("2024-01-15T09:00:00Z"), RFC 5545 basic
    ("20240115T090000Z") and date-only ("2024-01-15", "20240115") strings,
    as well as datetime/date objects. Naive results are placed in tz;
    date-only values resolve to midnight in tz. With tz=None naive values
    stay naive (floating wall-clock time).

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime.datetime):
        return ensure_timezone_aware(value, tz)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min, tzinfo=tz)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Unable to parse timestamp: {value!r}")

    try:
        parsed = date_parser.isoparse(value.strip())
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Unable to parse timestamp: {value!r}") from e
    return ensure_timezone_aware(parsed, tz)


def calendar_date_in(
    value: str | datetime.datetime | datetime.date, tz: datetime.tzinfo
) -> datetime.date:
    """Return the calendar date a timestamp falls on, as seen from tz.

    Date-only input is taken literally: "2024-01-15" is 15 January in every
    zone. Timestamps are converted to tz before the date is read, and naive
    timestamps are already read as wall-clock time in tz.
    """
    if isinstance(value, datetime.datetime):
        return ensure_timezone_aware(value, tz).astimezone(tz).date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and is_date_only(value):
        return parse_timestamp(value, tz).date()
    return parse_timestamp(value, tz).astimezone(tz).date()


def to_utc(dt: datetime.datetime) -> datetime.datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    return ensure_timezone_aware(dt).astimezone(datetime.UTC)
