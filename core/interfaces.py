from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

from models.replay_records import (BuildOrderStep, CacheStatistics, LadderStats,
                                   MatchRecord, ParsedReplay)


class IReplayRepository(ABC):
    """
    Persistent store for match records and build-order steps.
    Opponent lookups take the normalized identity keys of a tag (see utils.tag_utils.identity_keys).
    Empty results mean "no data"; failures raise CacheStoreError.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Create the schema if missing, safe to call on every startup"""
        pass

    @abstractmethod
    def upsert_replay(self, parsed: ParsedReplay) -> None:
        """Insert or refresh one replay's match record and replace its build-order steps, all or nothing"""
        pass

    @abstractmethod
    def get_cached_paths(self) -> Set[str]:
        pass

    @abstractmethod
    def get_recent_matches(self, opponent_keys: Sequence[str], limit: int) -> List[MatchRecord]:
        """Most recent first"""
        pass

    @abstractmethod
    def get_recent_matches_by_toon(self, toon: str, limit: int) -> List[MatchRecord]:
        """Most recent first"""
        pass

    @abstractmethod
    def get_recent_build_order(self, opponent_keys: Sequence[str], limit: int) -> List[BuildOrderStep]:
        """Descending time-in-match"""
        pass

    @abstractmethod
    def get_build_orders_by_replay(self, opponent_keys: Sequence[str], max_replays: int) -> Dict[str, List[BuildOrderStep]]:
        """Steps grouped per replay file, newest replay first, steps in ascending time"""
        pass

    @abstractmethod
    def get_last_known_toon(self, opponent_keys: Sequence[str]) -> Optional[str]:
        pass

    @abstractmethod
    def append_note(self, opponent_keys: Sequence[str], game_date: datetime, note: str) -> bool:
        """Returns False when no such match exists"""
        pass

    @abstractmethod
    def get_statistics(self) -> CacheStatistics:
        pass


class IReplayParser(ABC):
    """Turns one replay file into a ParsedReplay or raises PerFileParseError"""

    @abstractmethod
    def parse(self, replay_path: str) -> ParsedReplay:
        pass


class ILadderStatsProvider(ABC):
    """External live ladder lookup (owned outside this core, may time out and return None)"""

    @abstractmethod
    async def get_player_stats(self, opponent_tag: str) -> Optional[LadderStats]:
        pass
