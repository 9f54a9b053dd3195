import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from core.errors import CacheStoreError, PerFileParseError
from core.events import GAME_ENDED, LOBBY_READY, BaseEvent, GameStateEvent
from core.identity_resolver import IdentityResolver
from core.interfaces import ILadderStatsProvider
from core.opponent_analysis_service import OpponentAnalysisService
from core.replay_cache_service import ReplayCacheService
from models.lobby import LobbyReadResult, LobbyReadStatus, ResolvedLobby
from models.log_once_within_interval_filter import LogOnceWithinIntervalFilter
from models.replay_records import LadderStats, MatchRecord, OpponentProfile, SyncReport
from utils.file_utils import find_latest_file, read_bounded

MAX_LOBBY_FILE_BYTES = 1024 * 1024


@dataclass
class LobbyInsights:
    """What the presentation layer gets for one lobby: who, and what we know about them"""
    read_result: LobbyReadResult
    profile: Optional[OpponentProfile] = None
    error: Optional[Exception] = None

    @property
    def found(self) -> bool:
        return self.read_result.found

    @property
    def lobby(self) -> Optional[ResolvedLobby]:
        return self.read_result.lobby


class LobbyProcessor:
    """
    Glue between the external poll loop and the synchronous core.

    Lobby parsing runs inline (small buffer, fast); cache and store work runs in the
    default executor so the poll loop's own timer keeps ticking.
    """

    def __init__(self, resolver: IdentityResolver, cache: ReplayCacheService,
                 analysis: OpponentAnalysisService, ladder_stats: Optional[ILadderStatsProvider] = None,
                 replays_folder: Optional[str] = None, recursive: bool = True,
                 replay_file_extension: str = "SC2Replay", ladder_timeout_seconds: float = 5,
                 dedup_interval_seconds: float = 120, logger: Optional[logging.Logger] = None):
        self.resolver = resolver
        self.cache = cache
        self.analysis = analysis
        self.ladder_stats = ladder_stats
        self.replays_folder = replays_folder
        self.recursive = recursive
        self.replay_file_extension = replay_file_extension
        self.ladder_timeout_seconds = ladder_timeout_seconds
        self.cancel_event = threading.Event()
        self.last_insights: Optional[LobbyInsights] = None

        self.logger = logger or logging.getLogger(__name__)
        # same unreadable-lobby warning on every poll tick collapses to one per interval
        if not any(isinstance(f, LogOnceWithinIntervalFilter) for f in self.logger.filters):
            self.logger.addFilter(LogOnceWithinIntervalFilter(interval_seconds=dedup_interval_seconds))

    async def process_event(self, event: BaseEvent) -> Any:
        if not isinstance(event, GameStateEvent):
            self.logger.debug(f"Ignoring event {type(event).__name__}")
            return None

        if event.event_type == LOBBY_READY:
            return await self.handle_lobby(event.data)
        if event.event_type == GAME_ENDED:
            return await self.handle_game_ended(event.data)

        self.logger.debug(f"Ignoring game state event: {event.event_type}")
        return None

    async def handle_lobby(self, buffer: Optional[bytes]) -> LobbyInsights:
        result = self.resolver.read_lobby(buffer)
        return await self._insights_for(result)

    async def handle_lobby_file(self, path: str) -> LobbyInsights:
        return await self._insights_for(self.read_lobby_file(path))

    async def handle_manual_opponent(self, opponent_tag: str, opponent_nickname: str) -> LobbyInsights:
        lobby = self.resolver.from_manual_entry(opponent_tag, opponent_nickname)
        return await self._insights_for(LobbyReadResult(LobbyReadStatus.RESOLVED, lobby=lobby))

    def read_lobby_file(self, path: str) -> LobbyReadResult:
        """Read a lobby snapshot from disk (at most MAX_LOBBY_FILE_BYTES) and resolve it"""
        try:
            buffer = read_bounded(path, MAX_LOBBY_FILE_BYTES)
        except OSError as e:
            self.logger.warning(f"Could not read lobby file {path}: {e}")
            return LobbyReadResult(LobbyReadStatus.UNREADABLE, error=e)
        return self.resolver.read_lobby(buffer)

    async def _insights_for(self, result: LobbyReadResult) -> LobbyInsights:
        if not result.found:
            if result.status is LobbyReadStatus.UNREADABLE:
                self.logger.warning(f"Lobby not readable: {result.error}")
            insights = LobbyInsights(result)
            self.last_insights = insights
            return insights

        opponent = result.lobby.opponent_player
        live_stats = await self._fetch_live_stats(opponent.tag)

        loop = asyncio.get_running_loop()
        try:
            profile = await loop.run_in_executor(None, self.analysis.build_profile, opponent.tag, live_stats)
        except CacheStoreError as e:
            self.logger.error(f"Could not load history for {opponent.tag}: {e}")
            insights = LobbyInsights(result, error=e)
        else:
            insights = LobbyInsights(result, profile=profile)

        self.last_insights = insights
        return insights

    async def _fetch_live_stats(self, opponent_tag: str) -> Optional[LadderStats]:
        if self.ladder_stats is None:
            return None
        try:
            return await asyncio.wait_for(self.ladder_stats.get_player_stats(opponent_tag),
                                          timeout=self.ladder_timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(f"Ladder stats for {opponent_tag} timed out after {self.ladder_timeout_seconds}s")
        except Exception as e:
            # external enrichment is optional, the profile is built without it
            self.logger.warning(f"Ladder stats lookup failed for {opponent_tag}: {e}")
        return None

    async def handle_game_ended(self, replay_path: Optional[str] = None) -> Optional[MatchRecord]:
        """Save the replay of the match that just finished (latest replay in the folder when no path is given)"""
        loop = asyncio.get_running_loop()
        if not replay_path:
            if not self.replays_folder:
                self.logger.warning("Game ended but no replay path or replays folder is configured")
                return None
            replay_path = await loop.run_in_executor(
                None, find_latest_file, self.replays_folder, self.replay_file_extension, self.logger)
            if not replay_path:
                return None

        try:
            return await loop.run_in_executor(None, self.cache.save_match, replay_path)
        except PerFileParseError as e:
            self.logger.warning(f"Finished match not saved: {e}")
        except CacheStoreError as e:
            self.logger.error(f"Finished match not saved, replay cache unavailable: {e}")
        return None

    async def sync(self, only_missing: bool = True) -> SyncReport:
        """Folder sync in the executor; shutdown() stops it between files"""
        if not self.replays_folder:
            raise ValueError("No replays folder configured")
        work = self.cache.sync_missing if only_missing else self.cache.sync_from_folder
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, work, self.replays_folder, self.recursive, self.cancel_event)

    def shutdown(self):
        self.logger.info("Shutting down lobby processor")
        self.cancel_event.set()
