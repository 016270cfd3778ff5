#!/usr/bin/env python3
"""
Refresh Sales Job - Scheduled comp refresh for tracked prospects.

Runs the comp pipeline for every tracked player (or the players named on the
command line), sequentially and inside a time budget, then upserts each
player's cached market view and records today's price-history snapshot.

Usage:
    # All players in baseline_prices, default budget
    python services/jobs/refresh_sales.py

    # A single player with a known release year
    python services/jobs/refresh_sales.py --player "Termarr Johnson" --year 2022

    # Dry run - real comp source, in-memory storage, no database
    python services/jobs/refresh_sales.py --player "Jackson Holliday" --dry-run
"""
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import argparse
import uuid
from typing import List, Optional

from core.config import config
from core.database import MongoConnection
from core.logging import get_logger
from core.models.pipeline import BatchRefreshResult, PlayerTarget
from core.repositories import (
    BaselineRepository,
    InMemorySaleRepository,
    MarketRepository,
    MongoSaleRepository,
)
from services.comps.batch import refresh_players
from services.comps.pipeline import CompPipeline
from services.comps.source import CompSourceClient
from services.comps.summary import to_current_market

logger = get_logger("refresh-job")


def build_targets(
    player_names: Optional[List[str]],
    year: Optional[int],
    baseline: Optional[BaselineRepository],
) -> List[PlayerTarget]:
    """
    Players named on the command line, else every tracked player.

    A --year applies to every named player; otherwise the baseline's known
    release year is used when there is one.
    """
    if player_names:
        targets = []
        for name in player_names:
            known_year = year
            if known_year is None and baseline is not None:
                known_year = baseline.get_release_year(name)
            targets.append(PlayerTarget(player_name=name, known_year=known_year))
        return targets

    if baseline is None:
        return []

    return [
        PlayerTarget(player_name=p.player_name, known_year=p.release_year)
        for p in baseline.list_tracked_players()
    ]


def publish_market_views(batch: BatchRefreshResult, markets: MarketRepository) -> int:
    """
    Upsert current_market rows for refreshed players and snapshot the day.

    The previous cached row is read first so the move in average price is
    logged next to the new value.
    """
    upserted = 0
    for result in batch.results:
        market = to_current_market(result)
        if market is None:
            continue

        previous = markets.get_current_market(market.player_name)
        if previous is None:
            logger.info(
                f"{market.player_name}: first market view at ${market.average_price:.2f}",
                extra={"player": market.player_name, "average_price": market.average_price},
            )
        else:
            change = round(market.average_price - previous.average_price, 2)
            logger.info(
                f"{market.player_name}: avg ${previous.average_price:.2f} -> ${market.average_price:.2f}",
                extra={
                    "player": market.player_name,
                    "previous_average_price": previous.average_price,
                    "average_price": market.average_price,
                    "change": change,
                },
            )

        markets.upsert_current_market(market)
        upserted += 1

    if upserted:
        snapshots = markets.record_price_snapshots()
        logger.info(f"Recorded {snapshots} price snapshots", extra={"snapshots": snapshots})
    return upserted


def print_summary(batch: BatchRefreshResult):
    print("\n" + "=" * 60)
    print("REFRESH SUMMARY")
    print("=" * 60)
    for result in batch.results:
        if result.success:
            print(
                f"  ✓ {result.player_name}: avg ${result.average_price:.2f} "
                f"median ${result.median_price:.2f} (n={result.sample_size}) "
                f"[{result.resolved_year or '?'}] +{result.inserted} new"
            )
        else:
            code = result.error.code if result.error else "UNKNOWN"
            print(f"  ✗ {result.player_name}: {code}")
    for failure in batch.errors:
        if not any(r.player_name == failure.player_name for r in batch.results):
            print(f"  ✗ {failure.player_name}: {failure.error}")
    if batch.skipped_players:
        print(f"  Skipped (time budget): {', '.join(batch.skipped_players)}")
    print("-" * 60)
    print(
        f"  Refreshed: {batch.refreshed}  Failed: {batch.failed}  "
        f"Skipped: {batch.skipped}  New sales: {batch.new_sales_added}  "
        f"Time: {batch.elapsed_seconds:.1f}s"
    )
    print("=" * 60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Refresh sold comps for tracked prospects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Refresh every tracked player
  python refresh_sales.py

  # Refresh two players with a shorter budget
  python refresh_sales.py --player "Termarr Johnson" --player "Ethan Salas" --budget 60

  # Dry run (no database reads or writes)
  python refresh_sales.py --player "Jackson Holliday" --year 2022 --dry-run
        """
    )
    parser.add_argument(
        "--player",
        action="append",
        dest="players",
        metavar="NAME",
        help="Player to refresh (repeatable; default: all tracked players)"
    )
    parser.add_argument(
        "--year",
        type=int,
        help="Known release year for the named players"
    )
    parser.add_argument(
        "--budget",
        type=float,
        default=config.REFRESH_TIME_BUDGET_SECONDS,
        help=f"Wall-clock budget in seconds (default: {config.REFRESH_TIME_BUDGET_SECONDS:g})"
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=config.REFRESH_DELAY_SECONDS,
        help=f"Delay between players in seconds (default: {config.REFRESH_DELAY_SECONDS:g})"
    )
    parser.add_argument(
        "--days-back",
        type=int,
        default=config.MARKET_LOOKBACK_DAYS,
        metavar="DAYS",
        help="Only summarize sales from the last DAYS days (default: no cutoff)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use in-memory storage; nothing is written to the database"
    )

    args = parser.parse_args()

    if args.dry_run and not args.players:
        parser.error("--dry-run needs at least one --player (tracked players live in the database)")

    session_id = str(uuid.uuid4())[:8]
    logger.info("=" * 60)
    logger.info("PROSPECT COMPS - SALES REFRESH")
    logger.info("=" * 60)
    logger.info(
        "Starting refresh session",
        extra={
            "correlation_id": session_id,
            "players": args.players or "all tracked",
            "year": args.year,
            "budget_seconds": args.budget,
            "days_back": args.days_back,
            "dry_run": args.dry_run,
        }
    )

    source = CompSourceClient()
    connection = None if args.dry_run else MongoConnection()
    batch = None

    try:
        if connection is None:
            store = InMemorySaleRepository()
            baseline = None
            markets = None
        else:
            db = connection.open()
            store = MongoSaleRepository(db)
            store.ensure_indexes()
            baseline = BaselineRepository(db)
            markets = MarketRepository(db)

        targets = build_targets(args.players, args.year, baseline)
        if not targets:
            logger.warning("No players to refresh", extra={"correlation_id": session_id})
            return

        pipeline = CompPipeline(source, store, days_back=args.days_back)
        batch = refresh_players(
            pipeline,
            targets,
            time_budget_seconds=args.budget,
            delay_seconds=args.delay,
        )

        if markets is not None:
            publish_market_views(batch, markets)

    except KeyboardInterrupt:
        logger.info("Refresh interrupted by user", extra={"correlation_id": session_id})
    except Exception:
        logger.critical("Fatal error occurred", exc_info=True, extra={"correlation_id": session_id})
    finally:
        source.close()
        if connection is not None:
            connection.close()

    if batch is not None:
        print_summary(batch)
        logger.info(
            "Session completed",
            extra={
                "correlation_id": session_id,
                "refreshed": batch.refreshed,
                "failed": batch.failed,
                "skipped": batch.skipped,
                "new_sales_added": batch.new_sales_added,
            }
        )


if __name__ == "__main__":
    main()
