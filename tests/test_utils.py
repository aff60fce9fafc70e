from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from time_machine import travel

from httpgate._utils import as_utc, format_http_date, parse_http_date, truncate_to_seconds, utc_now


@pytest.mark.parametrize(
    "value",
    [
        "Sun, 06 Nov 1994 08:49:37 GMT",  # IMF-fixdate
        "Sunday, 06-Nov-94 08:49:37 GMT",  # obsolete RFC 850 format
        "Sun Nov  6 08:49:37 1994",  # ANSI C's asctime() format
    ],
)
def test_parse_http_date_formats(value):
    assert parse_http_date(value) == datetime(1994, 11, 6, 8, 49, 37, tzinfo=timezone.utc)


def test_parse_http_date_is_aware():
    parsed = parse_http_date("Sun, 06 Nov 1994 08:49:37 GMT")
    assert parsed is not None
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() == timedelta(0)


@pytest.mark.parametrize("value", ["", "yesterday", "Sun, 99 Nov 1994 08:49:37 GMT"])
def test_parse_http_date_invalid(value):
    assert parse_http_date(value) is None


def test_format_http_date():
    assert format_http_date(datetime(1994, 11, 6, 8, 49, 37, 123456, tzinfo=timezone.utc)) == (
        "Sun, 06 Nov 1994 08:49:37 GMT"
    )


def test_format_http_date_converts_to_utc():
    value = datetime(1994, 11, 6, 9, 49, 37, tzinfo=ZoneInfo("Europe/Berlin"))
    assert format_http_date(value) == "Sun, 06 Nov 1994 08:49:37 GMT"


def test_format_http_date_naive_is_utc():
    assert format_http_date(datetime(1994, 11, 6, 8, 49, 37)) == "Sun, 06 Nov 1994 08:49:37 GMT"


def test_truncate_to_seconds():
    value = datetime(2024, 1, 1, 12, 0, 0, 999999, tzinfo=timezone.utc)
    assert truncate_to_seconds(value) == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_as_utc():
    value = datetime(2024, 1, 1, 13, 0, 0, tzinfo=ZoneInfo("Europe/Berlin"))
    assert as_utc(value) == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert as_utc(value).tzinfo is timezone.utc


@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
def test_utc_now():
    assert utc_now() == datetime(2024, 1, 1, tzinfo=timezone.utc)
