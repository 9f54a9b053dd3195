import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

from core.errors import CacheStoreError, PerFileParseError
from core.interfaces import IReplayParser, IReplayRepository
from models.replay_records import (BuildOrderStep, CacheStatistics, MatchRecord, ParsedReplay,
                                   SyncReport)
from utils.file_utils import find_replay_files
from utils.tag_utils import identity_keys, normalize_toon, tag_name_part


class ReplayCacheService:
    """
    Single source of truth for match and build-order history.

    Writes for the same opponent are serialized by a per-opponent lock (bounded wait);
    writes for different opponents run independently. Reads take no lock and see
    whole replays only, since every replay is upserted in one store transaction.
    """

    def __init__(self, repository: IReplayRepository, parser: IReplayParser,
                 file_extension: str = "SC2Replay", lock_timeout_seconds: float = 10,
                 logger: Optional[logging.Logger] = None):
        self.repository = repository
        self.parser = parser
        self.file_extension = file_extension
        self.lock_timeout_seconds = lock_timeout_seconds
        self.logger = logger or logging.getLogger(__name__)
        # one lock per opponent name part for the life of the service, never evicted;
        # bounded by the number of distinct opponents in the replay folder
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def initialize(self) -> None:
        self.repository.initialize()

    # --- writes ---

    def sync_from_folder(self, folder: str, recursive: bool = True,
                         cancel_event: Optional[threading.Event] = None) -> SyncReport:
        """Parse and upsert every replay in folder; re-running on an unchanged folder changes nothing"""
        return self._sync(folder, recursive, cancel_event, only_missing=False)

    def sync_missing(self, folder: str, recursive: bool = True,
                     cancel_event: Optional[threading.Event] = None) -> SyncReport:
        """Parse only replays that are not cached yet"""
        return self._sync(folder, recursive, cancel_event, only_missing=True)

    def save_match(self, replay_path: str) -> MatchRecord:
        """
        Fast path after a match finishes: parse and upsert one file without scanning the folder.
        Raises PerFileParseError when the file cannot be used.
        """
        parsed = self.parser.parse(replay_path)
        self._store(parsed)
        self.logger.info(f"Saved match vs {parsed.match.opponent_tag} on {parsed.match.map} "
                         f"({parsed.match.outcome.value})")
        return parsed.match

    def annotate(self, opponent_tag: str, game_date: datetime, note: str) -> bool:
        """Append a note to the match played against opponent_tag at game_date; False when there is none"""
        if not note or not note.strip():
            raise ValueError("Note text is required")
        keys = identity_keys(opponent_tag)
        if not keys:
            return False
        with self._opponent_lock(opponent_tag):
            return self.repository.append_note(keys, game_date, note.strip())

    def _sync(self, folder: str, recursive: bool, cancel_event: Optional[threading.Event],
              only_missing: bool) -> SyncReport:
        report = SyncReport(folder=folder)
        files = find_replay_files(folder, self.file_extension, recursive, self.logger)
        report.files_on_disk = len(files)

        cached = self.repository.get_cached_paths()
        on_disk = set(files)
        report.missing_on_disk = sorted(
            path for path in cached
            if path not in on_disk and self._is_under(path, folder) and not os.path.exists(path)
        )

        self.logger.info(f"Syncing {len(files)} replay files from {folder}"
                         f"{' (new files only)' if only_missing else ''}")
        for path in files:
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                self.logger.info("Replay sync cancelled")
                break

            if only_missing and path in cached:
                report.skipped_cached += 1
                continue

            try:
                parsed = self.parser.parse(path)
            except PerFileParseError as e:
                report.failed += 1
                self.logger.warning(f"Skipping replay: {e}")
                continue
            except OSError as e:
                report.failed += 1
                self.logger.warning(f"Skipping replay {path}, file went away during sync: {e}")
                continue

            self._store(parsed)
            report.parsed += 1

        self.logger.info(f"Replay sync finished: {report.summary()}")
        return report

    def _store(self, parsed: ParsedReplay) -> None:
        with self._opponent_lock(parsed.match.opponent_tag):
            self.repository.upsert_replay(parsed)

    @contextmanager
    def _opponent_lock(self, opponent_tag: str):
        # keyed by name portion so 'Bravo' and 'Bravo#456' share one lock
        key = tag_name_part(opponent_tag)
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.Lock())
        if not lock.acquire(timeout=self.lock_timeout_seconds):
            raise CacheStoreError(
                f"Timed out after {self.lock_timeout_seconds}s waiting for another write on opponent '{opponent_tag}'")
        try:
            yield
        finally:
            lock.release()

    @staticmethod
    def _is_under(path: str, folder: str) -> bool:
        folder = os.path.normcase(os.path.abspath(folder))
        path = os.path.normcase(os.path.abspath(path))
        return path == folder or path.startswith(folder.rstrip(os.sep) + os.sep)

    # --- reads ---

    def get_recent_matches(self, opponent_tag: str, limit: int = 10) -> List[MatchRecord]:
        return self.repository.get_recent_matches(identity_keys(opponent_tag), limit)

    def get_recent_matches_by_toon(self, toon: str, limit: int = 10) -> List[MatchRecord]:
        toon = normalize_toon(toon)
        if not toon:
            return []
        return self.repository.get_recent_matches_by_toon(toon, limit)

    def get_recent_build_order(self, opponent_tag: str, limit: int = 20) -> List[BuildOrderStep]:
        return self.repository.get_recent_build_order(identity_keys(opponent_tag), limit)

    def get_build_orders_by_replay(self, opponent_tag: str, max_replays: int = 10) -> Dict[str, List[BuildOrderStep]]:
        return self.repository.get_build_orders_by_replay(identity_keys(opponent_tag), max_replays)

    def get_last_known_toon(self, opponent_tag: str) -> Optional[str]:
        return self.repository.get_last_known_toon(identity_keys(opponent_tag))

    def get_statistics(self) -> CacheStatistics:
        return self.repository.get_statistics()
