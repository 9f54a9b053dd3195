import pytest

from core.errors import FormatError
from core.team_assembler import assemble_teams, detect_queue


def _tokens(count):
    return [f"Player{i}#{100 + i}" for i in range(count)]


@pytest.mark.format_fragile
def test_six_tokens_build_two_teams_from_first_and_third_of_each_run():
    tokens = ["Alpha#123", "Alpha#123", "Alpha#123", "Bravo#456", "Bravo#456", "Bravo#456"]

    snapshot = assemble_teams(tokens)

    assert snapshot.team1.player.nickname == "Alpha"
    assert snapshot.team1.player.tag == tokens[2]
    assert snapshot.team2.player.nickname == "Bravo"
    assert snapshot.team2.player.tag == tokens[5]
    assert len(snapshot.team1.players) == 1
    assert len(snapshot.team2.players) == 1


@pytest.mark.format_fragile
def test_tag_slot_wins_when_duplicate_slot_differs():
    tokens = ["Alpha#123", "Alpha#999", "Alpha#123", "Bravo#456", "Brav0#456", "Bravo#457"]

    snapshot = assemble_teams(tokens)

    assert snapshot.team1.player.tag == "Alpha#123"
    assert snapshot.team2.player.tag == "Bravo#457"


@pytest.mark.parametrize("count", [0, 3, 4, 5, 7, 9])
def test_unsupported_token_counts_raise_format_error(count):
    with pytest.raises(FormatError) as exc_info:
        assemble_teams(_tokens(count))
    assert exc_info.value.token_count == count
    assert str(count) in str(exc_info.value)


@pytest.mark.parametrize("count,queue", [(12, "2v2"), (18, "3v3"), (24, "4v4")])
def test_team_mode_lobbies_are_rejected_with_detected_queue(count, queue):
    with pytest.raises(FormatError) as exc_info:
        assemble_teams(_tokens(count))
    assert exc_info.value.detected_queue == queue
    assert queue in str(exc_info.value)


def test_detect_queue():
    assert detect_queue(6) == "1v1"
    assert detect_queue(0) is None
    assert detect_queue(7) is None
    assert detect_queue(30) is None
