from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class MatchOutcome(Enum):
    WIN = "Win"
    LOSS = "Loss"
    UNDECIDED = "Undecided"


@dataclass(frozen=True)
class MatchRecord:
    """
    One finished 1v1 match seen from the local user's side.
    replay_file_path is the unique key; only the note may change after creation.
    """
    opponent_tag: str
    opponent_toon: Optional[str]
    game_date: datetime
    map: str
    your_race: str
    opponent_race: str
    outcome: MatchOutcome
    replay_file_path: str
    note: Optional[str] = None

    @property
    def you_won(self) -> bool:
        return self.outcome is MatchOutcome.WIN

    def with_note(self, note: Optional[str]) -> "MatchRecord":
        return replace(self, note=note)


@dataclass(frozen=True)
class BuildOrderStep:
    opponent_tag: str
    time_seconds: float
    kind: str
    name: str
    replay_file_path: str


@dataclass(frozen=True)
class ParsedReplay:
    """Everything one replay file contributes to the cache, upserted as a unit"""
    match: MatchRecord
    build_order: Tuple[BuildOrderStep, ...]


@dataclass(frozen=True)
class CacheStatistics:
    total_matches: int
    total_build_order_steps: int
    last_synced_at: Optional[datetime]


@dataclass
class SyncReport:
    folder: str
    files_on_disk: int = 0
    parsed: int = 0
    skipped_cached: int = 0
    failed: int = 0
    missing_on_disk: List[str] = field(default_factory=list)
    cancelled: bool = False

    def summary(self) -> str:
        text = (f"{self.parsed} parsed, {self.skipped_cached} already cached, "
                f"{self.failed} failed out of {self.files_on_disk} replay files")
        if self.missing_on_disk:
            text += f"; {len(self.missing_on_disk)} cached replays no longer on disk"
        if self.cancelled:
            text += " (cancelled)"
        return text


@dataclass(frozen=True)
class WinRate:
    wins: int
    losses: int

    @property
    def total_games(self) -> int:
        return self.wins + self.losses

    @property
    def percentage(self) -> Optional[float]:
        """None when no games were played, a 0% record is not the same as no record"""
        if self.total_games == 0:
            return None
        return self.wins / self.total_games * 100.0

    @property
    def display(self) -> str:
        percentage = self.percentage
        if percentage is None:
            return "not available"
        return f"{percentage:.1f}%"


@dataclass(frozen=True)
class MatchStatistics:
    games_played: int
    win_rate: WinRate
    last_game: Optional[datetime]

    @classmethod
    def empty(cls) -> "MatchStatistics":
        return cls(0, WinRate(0, 0), None)


@dataclass(frozen=True)
class BuildOrderPattern:
    opponent_tag: str
    steps: Tuple[BuildOrderStep, ...]
    name: str
    most_frequent_step: str
    matched_games: int
    last_analyzed: datetime


@dataclass(frozen=True)
class LadderStats:
    """Live ladder snapshot supplied by an external lookup, never fetched here"""
    nickname: Optional[str] = None
    current_league: Optional[str] = None
    current_mmr: Optional[int] = None
    highest_mmr: Optional[int] = None
    highest_league: Optional[str] = None
    total_games_played: Optional[int] = None
    toon_handle: Optional[str] = None
    race_stats: Dict[str, WinRate] = field(default_factory=dict)


@dataclass(frozen=True)
class OpponentProfile:
    opponent_tag: str
    opponent_toon: Optional[str]
    statistics: MatchStatistics
    preferred_race: str
    favorite_maps: List[Tuple[str, int]]
    build_pattern: BuildOrderPattern
    recent_matches: List[MatchRecord]
    live_stats: Optional[LadderStats] = None

    @property
    def versus_you(self) -> WinRate:
        return self.statistics.win_rate

    @property
    def last_played(self) -> Optional[datetime]:
        return self.statistics.last_game
