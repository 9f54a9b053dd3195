from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Player:
    """Tag is the canonical identity, nickname is display-only and may be stale"""
    nickname: str
    tag: str


@dataclass(frozen=True)
class Team:
    """A 1v1 team always holds exactly one player"""
    name: str
    players: Tuple[Player, ...]

    @property
    def player(self) -> Player:
        return self.players[0]


@dataclass(frozen=True)
class LobbySnapshot:
    """Two single-player teams assembled from one raw lobby buffer"""
    team1: Team
    team2: Team

    @property
    def teams(self) -> Tuple[Team, Team]:
        return (self.team1, self.team2)


class TeamRole(Enum):
    MINE = "mine"
    OPPONENT = "opponent"


@dataclass(frozen=True)
class ResolvedTeam:
    team: Team
    role: TeamRole


@dataclass(frozen=True)
class ResolvedLobby:
    """Teams labelled with the local user's point of view"""
    yours: ResolvedTeam
    opponent: ResolvedTeam

    @property
    def your_team(self) -> Team:
        return self.yours.team

    @property
    def opponent_team(self) -> Team:
        return self.opponent.team

    @property
    def opponent_player(self) -> Player:
        return self.opponent.team.player

    def as_pair(self) -> Tuple[Team, Team]:
        return (self.your_team, self.opponent_team)


class LobbyReadStatus(Enum):
    RESOLVED = "resolved"
    UNREADABLE = "unreadable"
    IDENTITY_MISSING = "identity_missing"


@dataclass(frozen=True)
class LobbyReadResult:
    """
    Outcome of reading one lobby buffer.
    There is no placeholder opponent: when status is not RESOLVED, lobby is None
    and error carries the typed failure.
    """
    status: LobbyReadStatus
    lobby: Optional[ResolvedLobby] = None
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def found(self) -> bool:
        return self.status is LobbyReadStatus.RESOLVED
