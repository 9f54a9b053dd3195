"""
Groups scanned identity tokens into the two single-player teams of a 1v1 lobby.

Observed 1v1 layout (empirical, not documented by the game):
    [0] player 1 nickname (tag-shaped, display name before '#')
    [1] player 1 nickname (duplicate)
    [2] player 1 battle tag   <- canonical
    [3] player 2 nickname
    [4] player 2 nickname (duplicate)
    [5] player 2 battle tag   <- canonical
Keep this exactly as is until a new lobby capture shows otherwise.
"""
import logging
from typing import Optional, Sequence

from core.errors import FormatError
from models.lobby import LobbySnapshot, Player, Team

logger = logging.getLogger(__name__)

TOKENS_PER_PLAYER = 3
PLAYERS_PER_1V1 = 2

NICKNAME_SLOT = 0
DUPLICATE_SLOT = 1
TAG_SLOT = 2

QUEUE_BY_PLAYER_COUNT = {
    2: "1v1",
    4: "2v2",
    6: "3v3",
    8: "4v4",
}


def detect_queue(token_count: int) -> Optional[str]:
    """Queue name for a token count that fits a known lobby layout, else None"""
    if token_count <= 0 or token_count % TOKENS_PER_PLAYER != 0:
        return None
    return QUEUE_BY_PLAYER_COUNT.get(token_count // TOKENS_PER_PLAYER)


def assemble_teams(tokens: Sequence[str]) -> LobbySnapshot:
    """
    Build Team 1 from run one's nickname/tag and Team 2 from run two's.
    Raises FormatError for any other shape (team modes, corrupted snapshot, wrong file).
    """
    count = len(tokens)
    if count != TOKENS_PER_PLAYER * PLAYERS_PER_1V1:
        raise FormatError(count, detect_queue(count))

    team1 = _team_from_run("Team 1", tokens[0:TOKENS_PER_PLAYER])
    team2 = _team_from_run("Team 2", tokens[TOKENS_PER_PLAYER:2 * TOKENS_PER_PLAYER])
    logger.debug(f"Assembled lobby: {team1.player.nickname} ({team1.player.tag}) vs "
                 f"{team2.player.nickname} ({team2.player.tag})")
    return LobbySnapshot(team1=team1, team2=team2)


def _team_from_run(name: str, run: Sequence[str]) -> Team:
    # the nickname slot is itself tag-shaped; its display name is the part before '#'
    nickname = run[NICKNAME_SLOT].split('#', 1)[0]
    tag = run[TAG_SLOT]
    if run[DUPLICATE_SLOT] != tag:
        # encoding noise, the tag slot wins
        logger.debug(f"{name}: duplicate slot '{run[DUPLICATE_SLOT]}' differs from tag '{tag}', using tag")
    return Team(name=name, players=(Player(nickname=nickname, tag=tag),))
