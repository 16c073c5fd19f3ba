"""
UTC timestamp utilities for Aeyez.

All timestamps MUST be in UTC with explicit timezone markers. Runs, results
and provider responses carry timezone-aware datetimes; the storage layer and
the JSON log formatter serialise them with a 'Z' suffix.

This module provides:
- utc_now(): Current time as timezone-aware datetime
- utc_timestamp(): ISO 8601 timestamp string with 'Z' suffix
- format_timestamp(): Serialise an aware datetime with 'Z' suffix
- parse_timestamp(): Parse ISO 8601 string to datetime

Examples:
    >>> from aeyez.utils.time import utc_now, utc_timestamp
    >>> now = utc_now()
    >>> now.tzinfo
    datetime.timezone.utc
    >>> utc_timestamp()
    '2025-11-02T08:30:45Z'
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return current time in UTC with timezone info.

    This is the canonical way to get current time in the codebase.
    NEVER use datetime.now() without a timezone or datetime.utcnow().

    Returns:
        datetime: Current UTC time with tzinfo=timezone.utc
    """
    return datetime.now(UTC)


def utc_timestamp() -> str:
    """
    Return ISO 8601 timestamp string with 'Z' suffix.

    Format: YYYY-MM-DDTHH:MM:SSZ

    Returns:
        str: ISO 8601 formatted timestamp in UTC
    """
    return format_timestamp(utc_now())


def format_timestamp(dt: datetime) -> str:
    """
    Serialise a timezone-aware datetime as YYYY-MM-DDTHH:MM:SSZ.

    Args:
        dt: Timezone-aware datetime (converted to UTC before formatting)

    Returns:
        str: ISO 8601 timestamp with 'Z' suffix

    Raises:
        ValueError: If dt is naive (missing timezone)

    Examples:
        >>> from datetime import datetime, timezone
        >>> format_timestamp(datetime(2025, 11, 2, 8, 30, 45, tzinfo=timezone.utc))
        '2025-11-02T08:30:45Z'
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Datetime must be timezone-aware (use timezone.utc). "
            "Got naive datetime. Use utc_now() or ensure dt has tzinfo set."
        )

    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse ISO 8601 timestamp string to timezone-aware datetime.

    Expects format: YYYY-MM-DDTHH:MM:SSZ (with 'Z' suffix for UTC)

    Args:
        timestamp_str: ISO 8601 timestamp string ending with 'Z'

    Returns:
        datetime: Timezone-aware datetime in UTC

    Raises:
        ValueError: If timestamp doesn't end with 'Z' or has invalid format

    Examples:
        >>> parse_timestamp('2025-11-02T08:30:45Z').year
        2025

        >>> parse_timestamp('2025-11-02T08:30:45')
        Traceback (most recent call last):
        ...
        ValueError: Timestamp must end with 'Z' (UTC): 2025-11-02T08:30:45
    """
    if not timestamp_str.endswith("Z"):
        raise ValueError(f"Timestamp must end with 'Z' (UTC): {timestamp_str}")

    try:
        return datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Invalid ISO 8601 timestamp format: {timestamp_str}") from e
