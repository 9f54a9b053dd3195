from datetime import datetime, timedelta

import pytz

from utils.time_utils import calculate_time_ago, format_game_clock, parse_game_clock, utc_from_unix


def test_parse_game_clock_formats():
    assert parse_game_clock("1:45") == 105.0
    assert parse_game_clock("0:00") == 0.0
    assert parse_game_clock("1:02:03") == 3723.0
    assert parse_game_clock(42) == 42.0
    assert parse_game_clock(12.5) == 12.5


def test_parse_game_clock_unreadable_values():
    assert parse_game_clock(None) is None
    assert parse_game_clock("") is None
    assert parse_game_clock("soon") is None
    assert parse_game_clock(True) is None


def test_format_game_clock():
    assert format_game_clock(83) == "1:23"
    assert format_game_clock(None) == "0:00"


def test_utc_from_unix():
    assert utc_from_unix(1714593600) == datetime(2024, 5, 1, 20, 0, tzinfo=pytz.utc)


def test_calculate_time_ago():
    now = datetime(2024, 5, 3, 12, 0, tzinfo=pytz.utc)
    assert calculate_time_ago(now - timedelta(days=2), now=now) == "about 2 days ago"
    assert calculate_time_ago(now - timedelta(hours=1, minutes=5), now=now) == "about 1 hour ago"
    assert calculate_time_ago(now - timedelta(minutes=3), now=now) == "about 3 minutes ago"
    assert calculate_time_ago(now, now=now) == "just now"
    # naive values are stored as UTC
    assert calculate_time_ago(datetime(2024, 5, 2, 12, 0), now=now) == "about 1 day ago"
    assert calculate_time_ago(None) == "never"
    assert calculate_time_ago("unknown") == "unknown"
