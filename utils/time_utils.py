"""
Utility functions for time calculations.
"""
from datetime import datetime
import pytz


def utc_from_unix(timestamp):
    """Aware UTC datetime for a unix timestamp (replay headers, file mtimes)"""
    return datetime.fromtimestamp(float(timestamp), tz=pytz.utc)


def parse_game_clock(value):
    """
    In-game clock to seconds.
    Build order steps carry either a number of seconds or an 'm:ss' / 'h:mm:ss' string.
    Returns None when the value cannot be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        return None
    try:
        seconds = 0.0
        for part in text.split(':'):
            seconds = seconds * 60 + float(part)
    except ValueError:
        return None
    return seconds


def format_game_clock(seconds):
    """83 -> '1:23'"""
    total = int(seconds or 0)
    return f"{total // 60}:{total % 60:02d}"


def calculate_time_ago(date_played, now=None):
    """
    Calculate human-readable time since date.
    Accepts either a datetime object or a date string in format '%Y-%m-%d %H:%M:%S'.
    Naive values are treated as UTC, which is how the replay cache stores them.
    Returns 'about X hours ago' format.
    """
    if date_played is None:
        return "never"

    # Handle string input
    if isinstance(date_played, str):
        if date_played == 'unknown' or not date_played:
            return date_played
        try:
            date_obj = pytz.utc.localize(datetime.strptime(date_played, '%Y-%m-%d %H:%M:%S'))
        except (ValueError, TypeError):
            return date_played
    else:
        if date_played.tzinfo is None:
            date_obj = pytz.utc.localize(date_played)
        else:
            date_obj = date_played

    current_time = now or datetime.now(pytz.utc)
    delta = current_time - date_obj

    days_ago = delta.days
    total_seconds = delta.total_seconds()

    if days_ago == 0:
        hours_ago = int(total_seconds // 3600)
        mins_ago = int((total_seconds % 3600) // 60)

        if hours_ago >= 1:
            return f"about {hours_ago} hour{'s' if hours_ago != 1 else ''} ago"
        elif mins_ago >= 1:
            return f"about {mins_ago} minute{'s' if mins_ago != 1 else ''} ago"
        else:
            return "just now"
    elif days_ago < 0:
        return "just now"
    else:
        return f"about {days_ago} day{'s' if days_ago != 1 else ''} ago"
