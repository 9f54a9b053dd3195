import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime

import pytz

import settings.config as config
from utils.logging_utils import configure_logging

logger = logging.getLogger("RunCore")

# Import Core
from core.build_order_patterns import BuildOrderPatternMatcher
from core.errors import BarcodeRevealError
from core.identity_resolver import IdentityResolver
from core.lobby_processor import LobbyInsights, LobbyProcessor
from core.opponent_analysis_service import OpponentAnalysisService
from core.replay_cache_service import ReplayCacheService
from core.replay_parser import ReplayParser
from core.repositories.sql_replay_repository import SqlReplayRepository
from utils.time_utils import calculate_time_ago, format_game_clock


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SC2 1v1 lobby opponent reveal and replay cache")
    parser.add_argument('--sync', action='store_true', help='re-parse every replay in the replays folder')
    parser.add_argument('--sync-missing', action='store_true', help='parse only replays not cached yet')
    parser.add_argument('--save', nargs='?', const='', metavar='REPLAY',
                        help='save one finished match (latest replay when no path is given)')
    parser.add_argument('--lobby', nargs='?', const=config.LOBBY_FILE_PATH, metavar='FILE',
                        help='read a lobby snapshot file and show the opponent profile')
    parser.add_argument('--opponent', metavar='TAG', help='opponent battle tag for a manual lobby or a note')
    parser.add_argument('--nickname', metavar='NAME', help='opponent nickname for a manual lobby')
    parser.add_argument('--note', metavar='TEXT', help='append a note to the match vs --opponent on --date')
    parser.add_argument('--date', metavar='ISO', help='game date of the match to annotate (UTC when no offset)')
    parser.add_argument('--stats', action='store_true', help='show replay cache statistics')
    return parser


def render_insights(insights: LobbyInsights) -> str:
    if not insights.found:
        return f"No opponent: {insights.read_result.status.value} ({insights.read_result.error})"

    opponent = insights.lobby.opponent_player
    lines = [f"Opponent: {opponent.nickname} ({opponent.tag})"]
    profile = insights.profile
    if profile is None:
        lines.append(f"History unavailable: {insights.error}")
        return "\n".join(lines)

    stats = profile.statistics
    lines.append(f"Games: {stats.games_played}, your win rate: {stats.win_rate.display} "
                 f"({stats.win_rate.wins}W/{stats.win_rate.losses}L)")
    lines.append(f"Last played: {calculate_time_ago(stats.last_game)}")
    lines.append(f"Preferred race: {profile.preferred_race}")
    if profile.opponent_toon:
        lines.append(f"Toon: {profile.opponent_toon}")
    if profile.favorite_maps:
        lines.append("Favorite maps: " + ", ".join(f"{name} ({count})" for name, count in profile.favorite_maps))

    pattern = profile.build_pattern
    if pattern.steps:
        lines.append(f"Build pattern: {pattern.name} (seen in {pattern.matched_games} earlier games, "
                     f"most frequent step {pattern.most_frequent_step})")
        lines.append("Last build: " + ", ".join(
            f"{format_game_clock(step.time_seconds)} {step.name}" for step in pattern.steps))

    live = profile.live_stats
    if live is not None:
        lines.append(f"Ladder: {live.current_league or '?'} {live.current_mmr or '?'} MMR "
                     f"(best {live.highest_league or '?'} {live.highest_mmr or '?'})")

    for match in profile.recent_matches:
        note = f" - {match.note}" if match.note else ""
        lines.append(f"  {match.game_date:%Y-%m-%d %H:%M} {match.map}: {match.your_race} vs "
                     f"{match.opponent_race}, {match.outcome.value}{note}")
    return "\n".join(lines)


def parse_date(value: str) -> datetime:
    date = datetime.fromisoformat(value)
    if date.tzinfo is None:
        date = pytz.utc.localize(date)
    return date


async def main(args) -> int:
    logger.info(f"Starting {config.NAME} {config.VERSION}...")

    # 1. Repositories & parsing
    repository = SqlReplayRepository(
        db_params={
            'host': config.DB_HOST,
            'port': config.DB_PORT,
            'user': config.DB_USER,
            'password': config.DB_PASSWORD,
            'database': config.DB_NAME,
            'connection_timeout': config.DB_CONNECT_TIMEOUT_SECONDS,
        },
        pool_size=config.DB_POOL_SIZE,
        retries=config.DB_RETRIES,
        retry_delay=config.DB_RETRY_DELAY_SECONDS,
    )
    replay_parser = ReplayParser(
        config.USER_BATTLE_TAG,
        config.SC2_PLAYER_ACCOUNTS,
        timeout_seconds=config.REPLAY_PARSE_TIMEOUT_SECONDS,
    )

    # 2. Services
    cache = ReplayCacheService(
        repository,
        replay_parser,
        file_extension=config.REPLAYS_FILE_EXTENSION,
        lock_timeout_seconds=config.OPPONENT_LOCK_TIMEOUT_SECONDS,
    )
    analysis = OpponentAnalysisService(
        cache,
        BuildOrderPatternMatcher(config.BUILD_ORDER_EARLY_GAME_SECONDS, config.PATTERN_SIMILARITY_THRESHOLD),
        history_limit=config.MATCH_HISTORY_LIMIT,
        recent_matches_count=config.RECENT_MATCHES_COUNT,
        build_order_step_limit=config.BUILD_ORDER_STEP_LIMIT,
        pattern_replays=config.PATTERN_REPLAYS_TO_COMPARE,
        favorite_maps_count=config.FAVORITE_MAPS_COUNT,
    )
    processor = LobbyProcessor(
        IdentityResolver(config.USER_BATTLE_TAG),
        cache,
        analysis,
        replays_folder=config.REPLAYS_FOLDER,
        recursive=config.REPLAYS_RECURSIVE,
        replay_file_extension=config.REPLAYS_FILE_EXTENSION,
        ladder_timeout_seconds=config.LADDER_STATS_TIMEOUT_SECONDS,
        dedup_interval_seconds=config.LOG_DEDUP_INTERVAL_SECONDS,
    )

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    if sys.platform != 'win32':
        loop.add_signal_handler(signal.SIGINT, processor.shutdown)
        loop.add_signal_handler(signal.SIGTERM, processor.shutdown)

    try:
        cache.initialize()

        if args.sync or args.sync_missing:
            report = await processor.sync(only_missing=not args.sync)
            print(report.summary())
            for path in report.missing_on_disk:
                print(f"  no longer on disk: {path}")

        if args.save is not None:
            match = await processor.handle_game_ended(args.save or None)
            print(f"Saved: {match.opponent_tag} on {match.map}, {match.outcome.value}" if match else "Nothing saved")

        if args.lobby:
            print(render_insights(await processor.handle_lobby_file(args.lobby)))
        elif args.opponent and args.nickname:
            print(render_insights(await processor.handle_manual_opponent(args.opponent, args.nickname)))

        if args.note:
            if not (args.opponent and args.date):
                print("--note needs --opponent and --date")
                return 2
            saved = analysis.annotate(args.opponent, parse_date(args.date), args.note)
            print("Note saved" if saved else f"No match vs {args.opponent} on {args.date}")

        if args.stats:
            stats = cache.get_statistics()
            print(f"Matches: {stats.total_matches}, build order steps: {stats.total_build_order_steps}, "
                  f"last synced: {calculate_time_ago(stats.last_synced_at)}")
    except (BarcodeRevealError, ValueError) as e:
        logger.error(str(e))
        return 1
    finally:
        replay_parser.close()

    return 0


if __name__ == "__main__":
    cli_args = build_parser().parse_args()
    if not any([cli_args.sync, cli_args.sync_missing, cli_args.save is not None, cli_args.lobby,
                cli_args.opponent, cli_args.note, cli_args.stats]):
        build_parser().print_help()
        sys.exit(0)

    log_file = configure_logging(config.LOG_DIR, config.LOG_LEVEL)
    logger.info(f"Logging to {log_file}")
    sys.exit(asyncio.run(main(cli_args)))
