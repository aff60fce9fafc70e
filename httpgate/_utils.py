from __future__ import annotations

import typing as tp
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def truncate_to_seconds(value: datetime) -> datetime:
    """
    Drop the sub-second part of a datetime.

    HTTP dates carry whole seconds only, so both sides of every date
    comparison go through this first.

    Examples:
        >>> truncate_to_seconds(datetime(2024, 1, 1, 12, 0, 0, 999999, tzinfo=timezone.utc))
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    return value.replace(microsecond=0)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_http_date(date: str) -> tp.Optional[datetime]:
    """
    Parse an HTTP-date (IMF-fixdate, RFC 850 or asctime format).

    Returns an aware UTC datetime, or None when the value can't be parsed.

    Examples:
        >>> parse_http_date("Sun, 06 Nov 1994 08:49:37 GMT")
        datetime.datetime(1994, 11, 6, 8, 49, 37, tzinfo=datetime.timezone.utc)
        >>> parse_http_date("yesterday") is None
        True
    """
    try:
        parsed = parsedate_to_datetime(date.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:  # pragma: nocover
        return None
    return as_utc(parsed)


def format_http_date(value: datetime) -> str:
    """
    Render a datetime as an IMF-fixdate, e.g. 'Sun, 06 Nov 1994 08:49:37 GMT'.
    """
    return format_datetime(truncate_to_seconds(as_utc(value)), usegmt=True)

