from datetime import datetime, timedelta, timezone

import pytest

from aliasman.timestamps import (
    ZERO_TIME,
    format_precise,
    format_rfc3339,
    parse_rfc3339,
    ts_to_string,
)


def test_format_rfc3339_truncates_subseconds():
    ts = datetime(2020, 3, 4, 5, 6, 7, 999999, tzinfo=timezone.utc)
    assert format_rfc3339(ts) == "2020-03-04T05:06:07Z"


def test_format_rfc3339_converts_to_utc():
    ts = datetime(2020, 3, 4, 5, 6, 7, tzinfo=timezone(timedelta(hours=2)))
    assert format_rfc3339(ts) == "2020-03-04T03:06:07Z"


def test_zero_time_round_trip():
    assert format_rfc3339(ZERO_TIME) == "0001-01-01T00:00:00Z"
    assert parse_rfc3339("0001-01-01T00:00:00Z") == ZERO_TIME


def test_parse_nanoseconds():
    ts = parse_rfc3339("2020-03-04T05:06:07.123456789Z")
    assert ts == datetime(2020, 3, 4, 5, 6, 7, 123456, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", ["", "yesterday", "2020-03-04T05:06:07"])
def test_parse_rejects_bad_input(value):
    with pytest.raises(ValueError):
        parse_rfc3339(value)


def test_precise_round_trip():
    ts = datetime(2020, 3, 4, 5, 6, 7, 123, tzinfo=timezone.utc)
    assert parse_rfc3339(format_precise(ts)) == ts


def test_ts_to_string():
    assert ts_to_string(ZERO_TIME) == ""
    assert ts_to_string(datetime(2020, 1, 1, tzinfo=timezone.utc)) == "2020-01-01T00:00:00Z"
