from datetime import datetime

import pytz

from models.replay_records import MatchOutcome, MatchRecord, MatchStatistics, SyncReport, WinRate


def test_win_rate_with_no_games_is_not_available():
    rate = WinRate(0, 0)
    assert rate.percentage is None
    assert rate.display == "not available"


def test_win_rate_three_wins_one_loss():
    rate = WinRate(3, 1)
    assert rate.total_games == 4
    assert rate.percentage == 75.0
    assert rate.display == "75.0%"


def test_zero_percent_is_still_a_record():
    assert WinRate(0, 2).display == "0.0%"


def test_empty_match_statistics():
    stats = MatchStatistics.empty()
    assert stats.games_played == 0
    assert stats.win_rate.display == "not available"
    assert stats.last_game is None


def test_with_note_returns_a_copy():
    match = MatchRecord("Bravo", None, datetime(2024, 5, 1, tzinfo=pytz.utc), "Alcyone LE",
                        "Protoss", "Zerg", MatchOutcome.WIN, "/replays/a.SC2Replay")
    noted = match.with_note("proxy hatch")
    assert match.note is None
    assert noted.note == "proxy hatch"
    assert noted.you_won


def test_sync_report_summary():
    report = SyncReport(folder="/replays", files_on_disk=5, parsed=3, skipped_cached=1, failed=1,
                        missing_on_disk=["/replays/gone.SC2Replay"], cancelled=True)
    summary = report.summary()
    assert "3 parsed" in summary
    assert "1 failed" in summary
    assert "no longer on disk" in summary
    assert summary.endswith("(cancelled)")
