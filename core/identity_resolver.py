"""
Decides which side of a 1v1 lobby is the local user.

Every cache write downstream is keyed by the opponent identity chosen here, so an
unmatched lobby is a hard failure (IdentityNotFoundError), never a guess.
"""
import logging
from typing import Optional

from core.errors import FormatError, IdentityNotFoundError
from core.lobby_scanner import scan_identity_tokens
from core.team_assembler import assemble_teams
from models.lobby import (LobbyReadResult, LobbyReadStatus, LobbySnapshot, Player,
                          ResolvedLobby, ResolvedTeam, Team, TeamRole)
from utils.tag_utils import is_battle_tag, tags_equal


class IdentityResolver:
    """Resolves lobbies against the configured local battle tag"""

    def __init__(self, configured_tag: str, logger: Optional[logging.Logger] = None):
        if not configured_tag or not configured_tag.strip():
            raise ValueError("IdentityResolver requires the local battle tag (USER_BATTLE_TAG) to be configured")
        self.configured_tag = configured_tag.strip()
        self.logger = logger or logging.getLogger(__name__)

    def resolve(self, snapshot: Optional[LobbySnapshot], raw_buffer: Optional[bytes] = None) -> ResolvedLobby:
        """
        Returns the lobby labelled (yours, opponent).
        When no assembled snapshot is available the raw buffer is token-scanned directly.
        """
        if snapshot is None:
            return self._resolve_from_tokens(raw_buffer)

        team1, team2 = snapshot.teams
        if self._is_mine(team1):
            return self._label(team1, team2)
        if self._is_mine(team2):
            return self._label(team2, team1)

        raise IdentityNotFoundError(self.configured_tag, [team1.player.tag, team2.player.tag])

    def read_lobby(self, buffer: Optional[bytes]) -> LobbyReadResult:
        """
        Scan, assemble and resolve one raw lobby buffer.
        Failures come back as a status instead of a placeholder opponent.
        """
        try:
            snapshot = assemble_teams(scan_identity_tokens(buffer))
        except FormatError as e:
            self.logger.debug(f"Lobby not readable yet: {e}")
            return LobbyReadResult(LobbyReadStatus.UNREADABLE, error=e)

        try:
            resolved = self.resolve(snapshot, buffer)
        except IdentityNotFoundError as e:
            self.logger.warning(str(e))
            return LobbyReadResult(LobbyReadStatus.IDENTITY_MISSING, error=e)

        self.logger.info(f"Lobby resolved: you ({resolved.your_team.player.tag}) vs "
                         f"{resolved.opponent_player.nickname} ({resolved.opponent_player.tag})")
        return LobbyReadResult(LobbyReadStatus.RESOLVED, lobby=resolved)

    def from_manual_entry(self, opponent_tag: str, opponent_nickname: str) -> ResolvedLobby:
        """Synthetic 1v1 lobby for a manually supplied opponent, bypassing the scanner"""
        if not opponent_tag or not opponent_tag.strip() or not opponent_nickname or not opponent_nickname.strip():
            raise ValueError("Opponent battle tag and nickname are required")
        if not is_battle_tag(opponent_tag):
            raise ValueError(f"'{opponent_tag}' is not a battle tag (Name#1234)")

        yours = self._single_player_team("Team 1", self.configured_tag.split('#', 1)[0], self.configured_tag)
        opponent = self._single_player_team("Team 2", opponent_nickname.strip(), opponent_tag.strip())
        self.logger.info(f"Creating debug lobby from manual entry: {opponent_nickname} ({opponent_tag})")
        return self._label(yours, opponent)

    def _resolve_from_tokens(self, raw_buffer: Optional[bytes]) -> ResolvedLobby:
        tokens = scan_identity_tokens(raw_buffer)
        mine = next((t for t in tokens if tags_equal(t, self.configured_tag)), None)
        opponent = next((t for t in tokens if not tags_equal(t, self.configured_tag)), None)

        if mine is None or opponent is None:
            raise IdentityNotFoundError(self.configured_tag, tokens)

        self.logger.debug(f"Resolved from raw tokens: {mine} vs {opponent}")
        return self._label(
            self._single_player_team("Team 1", mine.split('#', 1)[0], mine),
            self._single_player_team("Team 2", opponent.split('#', 1)[0], opponent),
        )

    def _is_mine(self, team: Team) -> bool:
        return any(tags_equal(player.tag, self.configured_tag) for player in team.players)

    @staticmethod
    def _label(yours: Team, opponent: Team) -> ResolvedLobby:
        return ResolvedLobby(
            yours=ResolvedTeam(team=yours, role=TeamRole.MINE),
            opponent=ResolvedTeam(team=opponent, role=TeamRole.OPPONENT),
        )

    @staticmethod
    def _single_player_team(name: str, nickname: str, tag: str) -> Team:
        return Team(name=name, players=(Player(nickname=nickname, tag=tag),))
