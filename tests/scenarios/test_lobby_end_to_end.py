import logging
import os

import pytest

from core.identity_resolver import IdentityResolver
from core.lobby_processor import LobbyProcessor
from core.lobby_scanner import scan_identity_tokens
from core.opponent_analysis_service import OpponentAnalysisService
from core.replay_cache_service import ReplayCacheService
from core.team_assembler import assemble_teams
from models.replay_records import MatchOutcome
from tests.mocks.all_mocks import FakeReplayParser, InMemoryReplayRepository, make_parsed_replay

logger = logging.getLogger("ScenarioTest")

LOBBY = b"noise|Alpha#123|Alpha#123|Alpha#123|Bravo#456|Bravo#456|Bravo#456"


@pytest.mark.format_fragile
def test_buffer_to_resolved_teams():
    snapshot = assemble_teams(scan_identity_tokens(LOBBY))

    assert (snapshot.team1.player.nickname, snapshot.team1.player.tag) == ("Alpha", "Alpha#123")
    assert (snapshot.team2.player.nickname, snapshot.team2.player.tag) == ("Bravo", "Bravo#456")

    resolved = IdentityResolver("Alpha#123").resolve(snapshot, LOBBY)
    assert resolved.your_team == snapshot.team1
    assert resolved.opponent_team == snapshot.team2


@pytest.mark.asyncio
async def test_full_session(tmp_path):
    """
    END-TO-END SESSION
    1. Sync the replay folder
    2. Lobby snapshot arrives, opponent profile is built from history
    3. Game ends, the new replay is saved
    4. Note added on the finished match
    """
    repo = InMemoryReplayRepository()
    parser = FakeReplayParser()
    history = [
        ("g1", 3, MatchOutcome.WIN, "Alcyone LE"),
        ("g2", 2, MatchOutcome.WIN, "Oceanborn LE"),
        ("g3", 1, MatchOutcome.LOSS, "Alcyone LE"),
    ]
    for i, (name, days_ago, outcome, map_name) in enumerate(history):
        path = tmp_path / f"{name}.SC2Replay"
        path.write_bytes(b"MPQ")
        os.utime(path, (1000 + i, 1000 + i))
        parser.add(make_parsed_replay(str(path), "Bravo", days_ago=days_ago, outcome=outcome, map_name=map_name))

    cache = ReplayCacheService(repo, parser)
    analysis = OpponentAnalysisService(cache)
    processor = LobbyProcessor(IdentityResolver("Alpha#123"), cache, analysis, replays_folder=str(tmp_path))
    cache.initialize()

    # STEP 1
    logger.info("--- STEP 1: Sync ---")
    report = await processor.sync()
    assert report.parsed == 3

    # STEP 2
    logger.info("--- STEP 2: Lobby ---")
    insights = await processor.handle_lobby(LOBBY)
    profile = insights.profile
    assert profile.statistics.games_played == 3
    assert profile.versus_you.display == "66.7%"
    assert profile.favorite_maps[0] == ("Alcyone LE", 2)
    assert profile.build_pattern.name == "zerg_aggression"

    # STEP 3
    logger.info("--- STEP 3: Game ended ---")
    finished = tmp_path / "g4.SC2Replay"
    finished.write_bytes(b"MPQ")
    os.utime(finished, (2000, 2000))
    parser.add(make_parsed_replay(str(finished), "Bravo", days_ago=0, outcome=MatchOutcome.WIN))
    match = await processor.handle_game_ended()
    assert match.replay_file_path == str(finished)

    # STEP 4
    logger.info("--- STEP 4: Note ---")
    assert analysis.annotate("Bravo#456", match.game_date, "hatch first into roaches")

    stats = cache.get_statistics()
    assert stats.total_matches == 4
    assert stats.last_synced_at is not None
    assert cache.get_recent_matches("Bravo#456", 1)[0].note == "hatch first into roaches"
