import argparse
import asyncio
import sys
import traceback

from fairway.config import Config
from fairway.database.database import Database
from fairway.services.delivery_guard import DeliveryGuard
from fairway.services.outing_pipeline import OutingPipeline
from fairway.utils.logger import setup_logger

logger = setup_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fairway", description="Outing results pipeline")
    parser.add_argument("--database-url", help="Override DATABASE_URL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    round_cmd = commands.add_parser("complete-round", help="Process a 'round finished' delivery")
    round_cmd.add_argument("round_id", type=int)

    group_cmd = commands.add_parser("complete-group", help="Process a group completion for an outing")
    group_cmd.add_argument("outing_id", type=int)
    group_cmd.add_argument("group_key")

    standings_cmd = commands.add_parser("standings", help="Rebuild a series standings table")
    standings_cmd.add_argument("series_id", type=int)
    standings_cmd.add_argument("--round-index", type=int, default=1)

    return parser


async def run(args) -> int:
    db = Database(args.database_url)
    await db.initialize()
    guard = None
    try:
        if args.command == "init-db":
            return 0

        if args.command == "standings":
            pipeline = OutingPipeline(db)
            table = await pipeline.standings.recompute(args.series_id, args.round_index)
            for standing in table.standings:
                rank = standing.rank if standing.rank is not None else "-"
                total = standing.total if standing.total is not None else "-"
                print(f"{rank:>3}  {standing.display_name:<24} {total}")
            return 0

        guard = await DeliveryGuard.connect()
        pipeline = OutingPipeline(db, guard=guard)
        if args.command == "complete-round":
            outcome = await pipeline.handle_round_completed(args.round_id)
        else:
            outcome = await pipeline.handle_group_completed(args.outing_id, args.group_key)

        print(f"{outcome.status.value}: outing={outcome.outing_id} "
              f"entries={len(outcome.leaderboard)} rivalry_changes={len(outcome.rivalry_changes)}"
              + (f" ({outcome.reason})" if outcome.reason else ""))
        return 0
    finally:
        if guard is not None:
            await guard.close()
        await db.close()


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    Config.validate()

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
