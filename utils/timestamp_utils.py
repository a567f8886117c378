"""
Timestamp Utility Module for the PixelPulse diff engine

Diff artifacts are named after the UTC moment they were generated, in an
ISO-8601 form made safe for filenames so a plain lexical sort of a directory
listing is also a chronological sort.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

import pytz

UTC_TIMEZONE = pytz.utc

# 2025-06-19T05-21-29-123456Z
FILENAME_TIMESTAMP_FORMAT = '%Y-%m-%dT%H-%M-%S-%fZ'
_UNSAFE_CHARS = re.compile(r'[:.]')


def utc_now():
    """Get current UTC datetime with timezone info"""
    return datetime.now(UTC_TIMEZONE)


def to_utc(dt):
    """Convert any datetime to UTC"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Assume naive datetime is in UTC
        return UTC_TIMEZONE.localize(dt)
    return dt.astimezone(UTC_TIMEZONE)


def make_filename_safe(value: str) -> str:
    """Replace characters that are unsafe in filenames (':' and '.') with '-'"""
    return _UNSAFE_CHARS.sub('-', value)


def generate_filename_timestamp(dt=None) -> str:
    """
    Generate a sortable, filesystem-safe UTC timestamp

    Args:
        dt: Datetime to format (defaults to now)

    Returns:
        str: Timestamp like "2025-06-19T05-21-29-123456Z"
    """
    if dt is None:
        dt = utc_now()

    iso = to_utc(dt).replace(tzinfo=None).isoformat(timespec='microseconds') + 'Z'
    return make_filename_safe(iso)


def parse_filename_timestamp(timestamp_str: str) -> Optional[datetime]:
    """Parse a timestamp produced by generate_filename_timestamp into an aware UTC datetime"""
    try:
        naive_dt = datetime.strptime(timestamp_str, FILENAME_TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return UTC_TIMEZONE.localize(naive_dt)


def next_filename_timestamp(timestamp_str: str) -> str:
    """Timestamp one microsecond after the given filename timestamp"""
    dt = parse_filename_timestamp(timestamp_str)
    if dt is None:
        raise ValueError(f"Not a filename timestamp: {timestamp_str}")
    return (dt + timedelta(microseconds=1)).strftime(FILENAME_TIMESTAMP_FORMAT)
