"""
Opponent Analysis Service - read-only analytics over the replay cache.

Builds the pre-game view of an opponent: record against you, favorite maps,
build-order pattern and preferred race, optionally enriched with a live ladder
snapshot the caller already fetched.
"""

from collections import Counter
from datetime import datetime
import logging
from typing import List, Optional, Sequence, Tuple

import pytz

from core.build_order_patterns import BuildOrderPatternMatcher
from core.replay_cache_service import ReplayCacheService
from models.replay_records import (BuildOrderPattern, LadderStats, MatchOutcome, MatchRecord,
                                   MatchStatistics, OpponentProfile, WinRate)

NO_PATTERN = "no_data"
UNKNOWN_RACE = "Unknown"


class OpponentAnalysisService:
    """Service to analyze opponent history and provide pre-game intel."""

    def __init__(self, cache: ReplayCacheService, pattern_matcher: Optional[BuildOrderPatternMatcher] = None,
                 history_limit: int = 100, recent_matches_count: int = 5, build_order_step_limit: int = 20,
                 pattern_replays: int = 10, favorite_maps_count: int = 3,
                 logger: Optional[logging.Logger] = None):
        self.cache = cache
        self.pattern_matcher = pattern_matcher or BuildOrderPatternMatcher()
        self.history_limit = history_limit
        self.recent_matches_count = recent_matches_count
        self.build_order_step_limit = build_order_step_limit
        self.pattern_replays = pattern_replays
        self.favorite_maps_count = favorite_maps_count
        self.logger = logger or logging.getLogger(__name__)

    def get_match_history(self, opponent_tag: str, limit: Optional[int] = None) -> List[MatchRecord]:
        """
        Tag history merged with the toon history of the opponent's last known toon,
        one record per replay, newest first. Older records stored without a toon
        stay part of the history.
        """
        limit = limit or self.history_limit
        matches = {m.replay_file_path: m for m in self.cache.get_recent_matches(opponent_tag, limit)}
        toon = self.cache.get_last_known_toon(opponent_tag)
        if toon:
            by_toon = self.cache.get_recent_matches_by_toon(toon, limit)
            self.logger.debug(f"Merging toon history for {opponent_tag} ({toon}): {len(by_toon)} games")
            for match in by_toon:
                matches.setdefault(match.replay_file_path, match)
        return sorted(matches.values(), key=lambda m: m.game_date, reverse=True)[:limit]

    @staticmethod
    def win_rate(matches: Sequence[MatchRecord]) -> WinRate:
        """Undecided games count toward neither side"""
        wins = sum(1 for m in matches if m.outcome is MatchOutcome.WIN)
        losses = sum(1 for m in matches if m.outcome is MatchOutcome.LOSS)
        return WinRate(wins=wins, losses=losses)

    def match_statistics(self, opponent_tag: str) -> MatchStatistics:
        return self._statistics(self.get_match_history(opponent_tag))

    def _statistics(self, matches: Sequence[MatchRecord]) -> MatchStatistics:
        if not matches:
            return MatchStatistics.empty()
        return MatchStatistics(
            games_played=len(matches),
            win_rate=self.win_rate(matches),
            last_game=max(m.game_date for m in matches),
        )

    def favorite_maps(self, matches: Sequence[MatchRecord], top_n: Optional[int] = None) -> List[Tuple[str, int]]:
        """Maps by number of games, ties broken by name"""
        top_n = self.favorite_maps_count if top_n is None else top_n
        if top_n <= 0:
            return []
        counts = Counter(m.map for m in matches if m.map)
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:top_n]

    @staticmethod
    def preferred_race(matches: Sequence[MatchRecord], live_stats: Optional[LadderStats] = None) -> str:
        if live_stats and live_stats.race_stats:
            race, stats = max(live_stats.race_stats.items(), key=lambda item: item[1].total_games)
            if stats.total_games > 0:
                return race
        races = Counter(m.opponent_race for m in matches if m.opponent_race and m.opponent_race != UNKNOWN_RACE)
        if not races:
            return UNKNOWN_RACE
        return races.most_common(1)[0][0]

    def classify_build_pattern(self, opponent_tag: str) -> BuildOrderPattern:
        """
        Name the opponent's latest build (first N steps of their most recent replay)
        by comparing it with their earlier builds.
        """
        by_replay = self.cache.get_build_orders_by_replay(opponent_tag, self.pattern_replays)
        now = datetime.now(pytz.utc)
        if not by_replay:
            return BuildOrderPattern(opponent_tag, (), NO_PATTERN, "", 0, now)

        builds = list(by_replay.values())
        current = tuple(sorted(builds[0], key=lambda s: s.time_seconds)[:self.build_order_step_limit])
        previous = [sorted(b, key=lambda s: s.time_seconds)[:self.build_order_step_limit] for b in builds[1:]]

        name, matched = self.pattern_matcher.match(current, previous)
        pattern = BuildOrderPattern(
            opponent_tag=opponent_tag,
            steps=current,
            name=name,
            most_frequent_step=self.pattern_matcher.most_frequent_step(current),
            matched_games=matched,
            last_analyzed=now,
        )
        self.logger.debug(f"Build pattern for {opponent_tag}: {name} (matched {matched} of {len(previous)} earlier builds)")
        return pattern

    def build_profile(self, opponent_tag: str, live_stats: Optional[LadderStats] = None) -> OpponentProfile:
        """
        Args:
            opponent_tag: battle tag or replay name of the opponent
            live_stats: ladder snapshot fetched by the caller, or None
        """
        self.logger.info(f"Analyzing opponent: {opponent_tag}")
        history = self.get_match_history(opponent_tag)
        statistics = self._statistics(history)
        toon = self.cache.get_last_known_toon(opponent_tag) or (live_stats.toon_handle if live_stats else None)

        profile = OpponentProfile(
            opponent_tag=opponent_tag,
            opponent_toon=toon,
            statistics=statistics,
            preferred_race=self.preferred_race(history, live_stats),
            favorite_maps=self.favorite_maps(history),
            build_pattern=self.classify_build_pattern(opponent_tag),
            recent_matches=list(history[:self.recent_matches_count]),
            live_stats=live_stats,
        )
        if statistics.games_played:
            self.logger.info(f"{opponent_tag}: {statistics.games_played} games, you win {statistics.win_rate.display}")
        else:
            self.logger.info(f"{opponent_tag}: first time playing this opponent")
        return profile

    def annotate(self, opponent_tag: str, game_date: datetime, note: str) -> bool:
        """The only write this service performs, delegated to the cache"""
        return self.cache.annotate(opponent_tag, game_date, note)
