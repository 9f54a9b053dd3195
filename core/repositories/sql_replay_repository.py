import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Set

import mysql.connector.pooling
import pytz
from mysql.connector import Error, errors

from core.errors import CacheStoreError
from core.interfaces import IReplayRepository
from models.replay_records import (BuildOrderStep, CacheStatistics, MatchOutcome,
                                   MatchRecord, ParsedReplay)
from utils.tag_utils import normalize_tag, normalize_toon

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS Matches (
        Id INT AUTO_INCREMENT PRIMARY KEY,
        Opponent_Tag VARCHAR(64) NOT NULL,
        Opponent_Key VARCHAR(64) NOT NULL,
        Opponent_Toon VARCHAR(64) NULL,
        Game_Date DATETIME NOT NULL,
        Map VARCHAR(128) NOT NULL,
        Your_Race VARCHAR(16) NOT NULL,
        Opponent_Race VARCHAR(16) NOT NULL,
        Outcome VARCHAR(16) NOT NULL,
        Replay_File_Path VARCHAR(700) NOT NULL,
        Note TEXT NULL,
        Cached_At DATETIME NOT NULL,
        UNIQUE KEY UQ_Matches_Replay_File_Path (Replay_File_Path),
        KEY IX_Matches_Opponent_Key (Opponent_Key, Game_Date),
        KEY IX_Matches_Opponent_Toon (Opponent_Toon, Game_Date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Build_Order_Steps (
        Id INT AUTO_INCREMENT PRIMARY KEY,
        Opponent_Tag VARCHAR(64) NOT NULL,
        Opponent_Key VARCHAR(64) NOT NULL,
        Time_Seconds DOUBLE NOT NULL,
        Kind VARCHAR(16) NOT NULL,
        Name VARCHAR(128) NOT NULL,
        Replay_File_Path VARCHAR(700) NOT NULL,
        KEY IX_Build_Order_Steps_Replay (Replay_File_Path),
        KEY IX_Build_Order_Steps_Opponent (Opponent_Key, Time_Seconds)
    )
    """,
)

MATCH_COLUMNS = ("Opponent_Tag", "Opponent_Key", "Opponent_Toon", "Game_Date", "Map", "Your_Race",
                 "Opponent_Race", "Outcome", "Replay_File_Path", "Note", "Cached_At")

# Note is owned by the user and survives a re-parse of the same replay
UPSERT_MATCH_SQL = (
    f"INSERT INTO Matches ({', '.join(MATCH_COLUMNS)}) "
    f"VALUES ({', '.join(['%s'] * len(MATCH_COLUMNS))}) "
    "ON DUPLICATE KEY UPDATE Opponent_Tag=VALUES(Opponent_Tag), Opponent_Key=VALUES(Opponent_Key), "
    "Opponent_Toon=VALUES(Opponent_Toon), Game_Date=VALUES(Game_Date), Map=VALUES(Map), "
    "Your_Race=VALUES(Your_Race), Opponent_Race=VALUES(Opponent_Race), Outcome=VALUES(Outcome), "
    "Cached_At=VALUES(Cached_At)"
)

DELETE_STEPS_SQL = "DELETE FROM Build_Order_Steps WHERE Replay_File_Path = %s"

INSERT_STEP_SQL = (
    "INSERT INTO Build_Order_Steps (Opponent_Tag, Opponent_Key, Time_Seconds, Kind, Name, Replay_File_Path) "
    "VALUES (%s, %s, %s, %s, %s, %s)"
)

TRANSIENT_ERRORS = (errors.InterfaceError, errors.OperationalError, errors.PoolError)


def _to_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """DATETIME columns hold naive UTC"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(pytz.utc)
    return value.replace(tzinfo=None)


def _from_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return pytz.utc.localize(value)


def _placeholders(values: Sequence) -> str:
    return ", ".join(["%s"] * len(values))


def match_to_row(match: MatchRecord, cached_at: datetime) -> tuple:
    return (
        match.opponent_tag,
        normalize_tag(match.opponent_tag),
        normalize_toon(match.opponent_toon) or None,
        _to_db_datetime(match.game_date),
        match.map,
        match.your_race,
        match.opponent_race,
        match.outcome.value,
        match.replay_file_path,
        match.note,
        _to_db_datetime(cached_at),
    )


def match_from_row(row: dict) -> MatchRecord:
    return MatchRecord(
        opponent_tag=row["Opponent_Tag"],
        opponent_toon=row.get("Opponent_Toon"),
        game_date=_from_db_datetime(row["Game_Date"]),
        map=row["Map"],
        your_race=row["Your_Race"],
        opponent_race=row["Opponent_Race"],
        outcome=MatchOutcome(row["Outcome"]),
        replay_file_path=row["Replay_File_Path"],
        note=row.get("Note") or None,
    )


def step_from_row(row: dict) -> BuildOrderStep:
    return BuildOrderStep(
        opponent_tag=row["Opponent_Tag"],
        time_seconds=float(row["Time_Seconds"]),
        kind=row["Kind"],
        name=row["Name"],
        replay_file_path=row["Replay_File_Path"],
    )


class SqlReplayRepository(IReplayRepository):
    """
    MySQL-backed replay cache.

    Every call borrows a pooled connection and returns it before leaving. Connection-level
    failures are retried a bounded number of times; anything still failing surfaces as
    CacheStoreError with the driver error chained.
    """

    def __init__(self, db_params: Optional[dict] = None, pool=None, pool_size: int = 5,
                 retries: int = 3, retry_delay: float = 2, logger: Optional[logging.Logger] = None):
        if pool is None and not db_params:
            raise ValueError("SqlReplayRepository needs either db_params or a connection pool")
        self.db_params = dict(db_params or {})
        self.pool = pool
        self.pool_size = pool_size
        self.retries = retries
        self.retry_delay = retry_delay
        self.logger = logger or logging.getLogger(__name__)

    def _get_pool(self):
        if self.pool is None:
            # Connection pool initialization
            self.pool = mysql.connector.pooling.MySQLConnectionPool(
                pool_name="replay_cache_pool",
                pool_size=self.pool_size,
                **self.db_params
            )
        return self.pool

    def _run(self, work: Callable, write: bool = False):
        """Execute work(cursor) on a pooled connection, as one transaction when write=True"""
        attempt = 0
        while True:
            conn = None
            cursor = None
            try:
                conn = self._get_pool().get_connection()
                cursor = conn.cursor(dictionary=True, buffered=True)
                if write:
                    conn.start_transaction()
                result = work(cursor)
                if write:
                    conn.commit()
                return result
            except TRANSIENT_ERRORS as e:
                self._rollback(conn, write)
                if attempt >= self.retries:
                    raise CacheStoreError(f"Replay cache unavailable after {attempt + 1} attempts: {e}") from e
                attempt += 1
                self.logger.debug(f"encountered error: {e}, wait and retry #{attempt}")
                time.sleep(self.retry_delay)
            except Error as e:
                self._rollback(conn, write)
                raise CacheStoreError(f"Replay cache query failed: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                # row mapping failed, the stored data does not fit the schema
                self._rollback(conn, write)
                raise CacheStoreError(f"Replay cache row is corrupt: {e!r}") from e
            finally:
                if cursor is not None:
                    cursor.close()
                if conn is not None:
                    conn.close()

    def _rollback(self, conn, write: bool):
        if conn is None or not write:
            return
        try:
            conn.rollback()
        except Error as e:
            self.logger.debug(f"rollback failed: {e}")

    def initialize(self) -> None:
        def work(cursor):
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)
        self._run(work, write=True)
        self.logger.info("Replay cache schema ready")

    def upsert_replay(self, parsed: ParsedReplay) -> None:
        match = parsed.match
        opponent_key = normalize_tag(match.opponent_tag)
        step_rows = [
            (step.opponent_tag, opponent_key, step.time_seconds, step.kind, step.name, match.replay_file_path)
            for step in parsed.build_order
        ]

        def work(cursor):
            cursor.execute(UPSERT_MATCH_SQL, match_to_row(match, datetime.now(pytz.utc)))
            cursor.execute(DELETE_STEPS_SQL, (match.replay_file_path,))
            if step_rows:
                cursor.executemany(INSERT_STEP_SQL, step_rows)

        self._run(work, write=True)
        self.logger.debug(f"Cached {match.replay_file_path} ({len(step_rows)} build order steps)")

    def get_cached_paths(self) -> Set[str]:
        def work(cursor):
            cursor.execute("SELECT Replay_File_Path FROM Matches")
            return {row["Replay_File_Path"] for row in cursor.fetchall()}
        return self._run(work)

    def get_recent_matches(self, opponent_keys: Sequence[str], limit: int) -> List[MatchRecord]:
        if not opponent_keys or limit <= 0:
            return []
        sql = (f"SELECT * FROM Matches WHERE Opponent_Key IN ({_placeholders(opponent_keys)}) "
               "ORDER BY Game_Date DESC, Id DESC LIMIT %s")

        def work(cursor):
            cursor.execute(sql, (*opponent_keys, limit))
            return [match_from_row(row) for row in cursor.fetchall()]
        return self._run(work)

    def get_recent_matches_by_toon(self, toon: str, limit: int) -> List[MatchRecord]:
        toon = normalize_toon(toon)
        if not toon or limit <= 0:
            return []
        sql = "SELECT * FROM Matches WHERE Opponent_Toon = %s ORDER BY Game_Date DESC, Id DESC LIMIT %s"

        def work(cursor):
            cursor.execute(sql, (toon, limit))
            return [match_from_row(row) for row in cursor.fetchall()]
        return self._run(work)

    def get_recent_build_order(self, opponent_keys: Sequence[str], limit: int) -> List[BuildOrderStep]:
        if not opponent_keys or limit <= 0:
            return []
        sql = (f"SELECT * FROM Build_Order_Steps WHERE Opponent_Key IN ({_placeholders(opponent_keys)}) "
               "ORDER BY Time_Seconds DESC, Id DESC LIMIT %s")

        def work(cursor):
            cursor.execute(sql, (*opponent_keys, limit))
            return [step_from_row(row) for row in cursor.fetchall()]
        return self._run(work)

    def get_build_orders_by_replay(self, opponent_keys: Sequence[str], max_replays: int) -> Dict[str, List[BuildOrderStep]]:
        if not opponent_keys or max_replays <= 0:
            return {}
        sql = (
            "SELECT s.* FROM Build_Order_Steps s "
            "JOIN (SELECT Replay_File_Path, Game_Date FROM Matches "
            f"      WHERE Opponent_Key IN ({_placeholders(opponent_keys)}) "
            "      ORDER BY Game_Date DESC LIMIT %s) m ON m.Replay_File_Path = s.Replay_File_Path "
            "ORDER BY m.Game_Date DESC, s.Replay_File_Path, s.Time_Seconds ASC, s.Id ASC"
        )

        def work(cursor):
            cursor.execute(sql, (*opponent_keys, max_replays))
            grouped: Dict[str, List[BuildOrderStep]] = {}
            for row in cursor.fetchall():
                step = step_from_row(row)
                grouped.setdefault(step.replay_file_path, []).append(step)
            return grouped
        return self._run(work)

    def get_last_known_toon(self, opponent_keys: Sequence[str]) -> Optional[str]:
        if not opponent_keys:
            return None
        sql = (f"SELECT Opponent_Toon FROM Matches WHERE Opponent_Key IN ({_placeholders(opponent_keys)}) "
               "AND Opponent_Toon IS NOT NULL AND Opponent_Toon <> '' "
               "ORDER BY Game_Date DESC, Id DESC LIMIT 1")

        def work(cursor):
            cursor.execute(sql, tuple(opponent_keys))
            row = cursor.fetchone()
            return row["Opponent_Toon"] if row else None
        return self._run(work)

    def append_note(self, opponent_keys: Sequence[str], game_date: datetime, note: str) -> bool:
        if not opponent_keys:
            return False
        sql = (
            "UPDATE Matches SET Note = CASE WHEN Note IS NULL OR Note = '' THEN %s "
            "ELSE CONCAT(Note, '\\n', %s) END "
            f"WHERE Opponent_Key IN ({_placeholders(opponent_keys)}) AND Game_Date = %s"
        )

        def work(cursor):
            cursor.execute(sql, (note, note, *opponent_keys, _to_db_datetime(game_date)))
            return cursor.rowcount > 0
        updated = self._run(work, write=True)
        if not updated:
            self.logger.info(f"No cached match on {game_date} for {opponent_keys[0]}, note not saved")
        return updated

    def get_statistics(self) -> CacheStatistics:
        def work(cursor):
            cursor.execute("SELECT COUNT(*) AS Total, MAX(Cached_At) AS Last_Synced FROM Matches")
            matches = cursor.fetchone() or {}
            cursor.execute("SELECT COUNT(*) AS Total FROM Build_Order_Steps")
            steps = cursor.fetchone() or {}
            return CacheStatistics(
                total_matches=int(matches.get("Total") or 0),
                total_build_order_steps=int(steps.get("Total") or 0),
                last_synced_at=_from_db_datetime(matches.get("Last_Synced")),
            )
        return self._run(work)
