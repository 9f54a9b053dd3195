import asyncio
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set

import pytz

from core.errors import CacheStoreError, PerFileParseError
from core.interfaces import ILadderStatsProvider, IReplayParser, IReplayRepository
from models.replay_records import (BuildOrderStep, CacheStatistics, LadderStats, MatchOutcome,
                                   MatchRecord, ParsedReplay)
from utils.tag_utils import normalize_tag, normalize_toon

BASE_DATE = datetime(2024, 5, 1, 20, 0, tzinfo=pytz.utc)


def make_parsed_replay(path: str, opponent: str = "Bravo", days_ago: int = 0, map_name: str = "Alcyone LE",
                       outcome: MatchOutcome = MatchOutcome.WIN, opponent_race: str = "Zerg",
                       toon: Optional[str] = None, steps=(("SpawningPool", 60), ("Drone", 70), ("Hatchery", 95))):
    """steps: (name, seconds) or (name, seconds, kind) tuples"""
    match = MatchRecord(
        opponent_tag=opponent,
        opponent_toon=toon,
        game_date=BASE_DATE - timedelta(days=days_ago),
        map=map_name,
        your_race="Protoss",
        opponent_race=opponent_race,
        outcome=outcome,
        replay_file_path=path,
    )
    build_order = tuple(
        BuildOrderStep(opponent, float(step[1]), step[2] if len(step) > 2 else "Unit", step[0], path)
        for step in steps
    )
    return ParsedReplay(match=match, build_order=build_order)


class InMemoryReplayRepository(IReplayRepository):
    """Store double with the same upsert-by-path and replace-set semantics as the SQL repository"""

    def __init__(self):
        self.matches: Dict[str, MatchRecord] = {}
        self.cached_at: Dict[str, datetime] = {}
        self.steps: Dict[str, List[BuildOrderStep]] = {}
        self.initialize_calls = 0
        self.fail_upsert_for: Set[str] = set()
        self.upsert_calls: List[str] = []
        self.upsert_hook = None

    def initialize(self) -> None:
        self.initialize_calls += 1

    def upsert_replay(self, parsed: ParsedReplay) -> None:
        path = parsed.match.replay_file_path
        self.upsert_calls.append(path)
        if self.upsert_hook:
            self.upsert_hook(parsed)
        if path in self.fail_upsert_for:
            raise CacheStoreError(f"store unavailable while writing {path}")
        previous = self.matches.get(path)
        note = previous.note if previous else parsed.match.note
        self.matches[path] = parsed.match.with_note(note)
        self.cached_at[path] = datetime.now(pytz.utc)
        self.steps[path] = list(parsed.build_order)

    def get_cached_paths(self) -> Set[str]:
        return set(self.matches)

    def _by_keys(self, opponent_keys: Sequence[str]) -> List[MatchRecord]:
        keys = set(opponent_keys)
        found = [m for m in self.matches.values() if normalize_tag(m.opponent_tag) in keys]
        return sorted(found, key=lambda m: m.game_date, reverse=True)

    def get_recent_matches(self, opponent_keys: Sequence[str], limit: int) -> List[MatchRecord]:
        return self._by_keys(opponent_keys)[:max(limit, 0)]

    def get_recent_matches_by_toon(self, toon: str, limit: int) -> List[MatchRecord]:
        toon = normalize_toon(toon)
        found = [m for m in self.matches.values() if m.opponent_toon and normalize_toon(m.opponent_toon) == toon]
        return sorted(found, key=lambda m: m.game_date, reverse=True)[:max(limit, 0)]

    def get_recent_build_order(self, opponent_keys: Sequence[str], limit: int) -> List[BuildOrderStep]:
        steps = [s for m in self._by_keys(opponent_keys) for s in self.steps.get(m.replay_file_path, [])]
        return sorted(steps, key=lambda s: s.time_seconds, reverse=True)[:max(limit, 0)]

    def get_build_orders_by_replay(self, opponent_keys: Sequence[str], max_replays: int) -> Dict[str, List[BuildOrderStep]]:
        grouped = {}
        for match in self._by_keys(opponent_keys)[:max(max_replays, 0)]:
            steps = self.steps.get(match.replay_file_path, [])
            if steps:
                grouped[match.replay_file_path] = sorted(steps, key=lambda s: s.time_seconds)
        return grouped

    def get_last_known_toon(self, opponent_keys: Sequence[str]) -> Optional[str]:
        for match in self._by_keys(opponent_keys):
            if match.opponent_toon:
                return normalize_toon(match.opponent_toon)
        return None

    def append_note(self, opponent_keys: Sequence[str], game_date: datetime, note: str) -> bool:
        updated = False
        for match in self._by_keys(opponent_keys):
            if match.game_date == game_date:
                text = f"{match.note}\n{note}" if match.note else note
                self.matches[match.replay_file_path] = match.with_note(text)
                updated = True
        return updated

    def get_statistics(self) -> CacheStatistics:
        return CacheStatistics(
            total_matches=len(self.matches),
            total_build_order_steps=sum(len(steps) for steps in self.steps.values()),
            last_synced_at=max(self.cached_at.values()) if self.cached_at else None,
        )


class FakeReplayParser(IReplayParser):
    """Returns prepared ParsedReplay objects; unknown paths fail like a corrupt file"""

    def __init__(self, replays: Optional[Dict[str, ParsedReplay]] = None):
        self.replays = dict(replays or {})
        self.parse_calls: List[str] = []
        self.lock = threading.Lock()

    def add(self, parsed: ParsedReplay):
        self.replays[parsed.match.replay_file_path] = parsed

    def parse(self, replay_path: str) -> ParsedReplay:
        with self.lock:
            self.parse_calls.append(replay_path)
        parsed = self.replays.get(replay_path)
        if parsed is None:
            raise PerFileParseError(replay_path, "corrupt replay")
        return parsed


class MockLadderStatsProvider(ILadderStatsProvider):
    def __init__(self, stats: Optional[LadderStats] = None, delay: float = 0, error: Optional[Exception] = None):
        self.stats = stats
        self.delay = delay
        self.error = error
        self.requests: List[str] = []

    async def get_player_stats(self, opponent_tag: str) -> Optional[LadderStats]:
        self.requests.append(opponent_tag)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.stats
