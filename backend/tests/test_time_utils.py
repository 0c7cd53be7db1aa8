from datetime import date, datetime

import pytest

from barstock.time_utils import format_order_date, parse_history_bound, to_utc_z


@pytest.mark.parametrize("raw,expected", [
    ("2026-03-09T10:15:00Z", datetime(2026, 3, 9, 10, 15)),
    ("2026-03-09T12:15:00+02:00", datetime(2026, 3, 9, 10, 15)),
    ("2026-03-09T10:15", datetime(2026, 3, 9, 10, 15)),
    ("2026-03-09", datetime(2026, 3, 9, 0, 0)),
    ("  ", None),
    (None, None),
])
def test_parse_history_bound(raw, expected):
    assert parse_history_bound(raw) == expected


def test_bare_date_upper_bound_covers_whole_day():
    bound = parse_history_bound("2026-03-09", end_of_day=True)
    assert bound == datetime(2026, 3, 9, 23, 59, 59, 999999)


@pytest.mark.parametrize("raw", ["yesterday", "2026-13-01", "09.03.2026"])
def test_parse_history_bound_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_history_bound(raw)


def test_to_utc_z_drops_microseconds():
    assert to_utc_z(datetime(2026, 3, 9, 10, 15, 30, 123456)) == "2026-03-09T10:15:30Z"
    assert to_utc_z(None) is None


def test_format_order_date():
    assert format_order_date(date(2026, 3, 9)) == "09.03.2026"
