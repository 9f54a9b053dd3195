import logging
import os
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Iterable, Optional

import spawningtool.parser

from core.errors import PerFileParseError
from core.interfaces import IReplayParser
from models.replay_records import BuildOrderStep, MatchOutcome, MatchRecord, ParsedReplay
from utils.sc2_unit_kinds import classify_step
from utils.tag_utils import normalize_tag, normalize_toon, tag_name_part
from utils.time_utils import parse_game_clock, utc_from_unix


class ReplayParser(IReplayParser):
    """
    Parse SC2 replay files using spawningtool.

    Only 1v1 replays in which the local user can be recognised are accepted; the
    result holds the opponent's build order only. Every failure for a single file
    becomes PerFileParseError so a folder sync can count it and move on.
    """

    def __init__(self, user_battle_tag: str, player_accounts: Iterable[str] = (),
                 timeout_seconds: float = 30, logger: Optional[logging.Logger] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.local_names = {tag_name_part(user_battle_tag)} if user_battle_tag else set()
        self.local_names.update(normalize_tag(name) for name in player_accounts if name)
        self.local_names.discard("")
        if not self.local_names:
            raise ValueError("ReplayParser needs the local battle tag or at least one player account")
        self.timeout_seconds = timeout_seconds
        self.logger = logger or logging.getLogger(__name__)
        self._owns_executor = executor is None
        self.executor = executor or self._new_executor()

    def parse(self, replay_path: str) -> ParsedReplay:
        if not os.path.exists(replay_path):
            raise PerFileParseError(replay_path, "file not found")
        if not os.access(replay_path, os.R_OK):
            raise PerFileParseError(replay_path, "file is not readable")

        replay_data = self._load(replay_path)
        return self.build_parsed_replay(replay_path, replay_data)

    def _load(self, replay_path: str) -> dict:
        future = self.executor.submit(spawningtool.parser.parse_replay, replay_path)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as e:
            if not future.cancel():
                self._replace_stuck_executor(replay_path)
            raise PerFileParseError(replay_path, f"parser did not finish within {self.timeout_seconds}s") from e
        except Exception as e:
            self.logger.debug(f"Exception in spawningtool for {replay_path}: {e}")
            raise PerFileParseError(replay_path, str(e) or type(e).__name__) from e

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=2, thread_name_prefix="replay-parse")

    def _replace_stuck_executor(self, replay_path: str) -> None:
        # a running spawningtool call cannot be interrupted; later files get a fresh pool
        self.logger.warning(f"spawningtool is stuck on {replay_path}, abandoning its worker thread")
        if self._owns_executor:
            self.executor.shutdown(wait=False)
        self.executor = self._new_executor()
        self._owns_executor = True

    def build_parsed_replay(self, replay_path: str, replay_data: dict) -> ParsedReplay:
        """Turn spawningtool output into a match record plus the opponent's build order"""
        game_type = replay_data.get('game_type')
        if game_type != "1v1":
            raise PerFileParseError(replay_path, f"unsupported game type {game_type!r}, only 1v1 is cached")

        players = list((replay_data.get('players') or {}).values())
        if len(players) != 2:
            raise PerFileParseError(replay_path, f"expected 2 players, found {len(players)}")

        mine = [p for p in players if normalize_tag(p.get('name')) in self.local_names]
        if len(mine) != 1:
            names = [p.get('name') for p in players]
            raise PerFileParseError(replay_path, f"local player not recognised among {names}")
        you = mine[0]
        opponent = players[1] if players[0] is you else players[0]

        opponent_tag = (opponent.get('name') or "").strip()
        if not opponent_tag:
            raise PerFileParseError(replay_path, "opponent has no name")

        match = MatchRecord(
            opponent_tag=opponent_tag,
            opponent_toon=normalize_toon(opponent.get('handle')) or None,
            game_date=self._game_date(replay_path, replay_data),
            map=replay_data.get('map') or "Unknown",
            your_race=you.get('race') or "Unknown",
            opponent_race=opponent.get('race') or "Unknown",
            outcome=self._outcome(you, opponent),
            replay_file_path=replay_path,
        )

        steps = []
        for entry in opponent.get('buildOrder') or []:
            seconds = parse_game_clock(entry.get('time'))
            name = entry.get('name')
            if seconds is None or not name:
                continue
            steps.append(BuildOrderStep(
                opponent_tag=opponent_tag,
                time_seconds=seconds,
                kind=classify_step(entry),
                name=name,
                replay_file_path=replay_path,
            ))

        self.logger.debug(f"Parsed {replay_path}: vs {opponent_tag} on {match.map}, "
                          f"{match.outcome.value}, {len(steps)} build order steps")
        return ParsedReplay(match=match, build_order=tuple(steps))

    @staticmethod
    def _outcome(you: dict, opponent: dict) -> MatchOutcome:
        if you.get('is_winner'):
            return MatchOutcome.WIN
        if opponent.get('is_winner'):
            return MatchOutcome.LOSS
        return MatchOutcome.UNDECIDED

    def _game_date(self, replay_path: str, replay_data: dict):
        timestamp = replay_data.get('unix_timestamp')
        if timestamp:
            try:
                return utc_from_unix(timestamp)
            except (TypeError, ValueError, OverflowError, OSError):
                self.logger.debug(f"Unreadable timestamp {timestamp!r} in {replay_path}, using file time")
        try:
            return utc_from_unix(os.path.getmtime(replay_path))
        except OSError as e:
            raise PerFileParseError(replay_path, f"no usable game date: {e}") from e

    def close(self):
        self.executor.shutdown(wait=False)
