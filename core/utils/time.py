"""
Time Utilities

Exchanges report time in several shapes:
- Binance: milliseconds since epoch (e.g., 1704110400000)
- Poloniex: seconds since epoch for deposits/withdrawals (e.g., 1704110400)
  and "YYYY-MM-DD HH:MM:SS" strings (UTC) for trades and orders
- Cryptopia: ISO 8601 strings with up to 7 fractional digits

Every normalized entity carries integer milliseconds since epoch (UTC).
The helpers below convert to and from that representation.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from dateutil import parser as date_parser


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to a UTC datetime.

    Values above 1e12 are treated as milliseconds, anything else as seconds.

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or out of range

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime to a Unix timestamp. Naive datetimes are taken as UTC.

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400
        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400000
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        return (dt - EPOCH) // timedelta(milliseconds=1)
    return (dt - EPOCH) // timedelta(seconds=1)


def milliseconds() -> int:
    """Current UTC time in milliseconds since epoch."""
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds=True)


def seconds() -> int:
    """Current UTC time in seconds since epoch."""
    return datetime_to_timestamp(datetime.now(timezone.utc))


def parse8601(value: Optional[str]) -> Optional[int]:
    """
    Parse a date string into milliseconds since epoch.

    Accepts ISO 8601 with a "T" or a space separator, with or without
    fractional seconds and offset. Strings without an offset are UTC.

    Args:
        value: Date string as sent by the exchange

    Returns:
        Milliseconds since epoch, or None when the value is missing or
        cannot be parsed

    Examples:
        >>> parse8601("2018-01-01 00:00:00")
        1514764800000
        >>> parse8601("2017-10-10T18:39:03.8928376")
        1507660743892
        >>> parse8601("not a date") is None
        True
    """
    if not value or not isinstance(value, str):
        return None
    try:
        dt = date_parser.parse(value)
    except (ValueError, OverflowError):
        return None
    return datetime_to_timestamp(dt, milliseconds=True)


def iso8601(timestamp: Optional[Union[int, float]]) -> Optional[str]:
    """
    Render milliseconds since epoch as an ISO 8601 string with millisecond
    precision and a trailing "Z".

    Example:
        >>> iso8601(1514764800000)
        '2018-01-01T00:00:00.000Z'
    """
    if timestamp is None:
        return None
    dt = datetime.fromtimestamp(timestamp / 1000.0, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(timestamp) % 1000:03d}Z"
