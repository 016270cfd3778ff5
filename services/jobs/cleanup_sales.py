#!/usr/bin/env python3
"""
Cleanup Sales Job - Removes stored sales that fail the current exclusion rules.

Usage:
    # See what would be removed
    python services/jobs/cleanup_sales.py --dry-run --sample 20

    # Remove them
    python services/jobs/cleanup_sales.py
"""
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import argparse
import uuid

from core.database import MongoConnection
from core.logging import get_logger
from core.models.pipeline import SweepReport
from core.repositories import MongoSaleRepository
from services.comps.sweep import sweep_invalid_sales

logger = get_logger("cleanup-job")


def print_report(report: SweepReport, sample: int):
    print("\n" + "=" * 60)
    print("CLEANUP SUMMARY" + (" (DRY RUN)" if report.dry_run else ""))
    print("=" * 60)
    print(f"  Sales checked: {report.checked}")
    print(f"  Flagged:       {len(report.findings)}")
    for reason, count in sorted(report.by_reason.items(), key=lambda item: -item[1]):
        print(f"    {reason}: {count}")

    if sample and report.findings:
        print(f"\n  Sample (first {min(sample, len(report.findings))}):")
        for finding in report.findings[:sample]:
            print(f"    [{finding.reason}: {finding.token}] {finding.normalized_player_name} - {finding.title[:70]}")

    if report.dry_run:
        print("\n  Dry run: nothing deleted")
    else:
        print(f"\n  Deleted: {report.deleted}")
    print("=" * 60)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Sweep stored sales against the exclusion rules")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report flagged sales without deleting them"
    )
    parser.add_argument(
        "--sample",
        type=int,
        default=10,
        help="Number of flagged sales to print (default: 10)"
    )

    args = parser.parse_args()

    session_id = str(uuid.uuid4())[:8]
    logger.info("=" * 60)
    logger.info("PROSPECT COMPS - SALES CLEANUP")
    logger.info("=" * 60)
    logger.info(
        "Starting cleanup session",
        extra={"correlation_id": session_id, "dry_run": args.dry_run}
    )

    report = None
    connection = MongoConnection()
    try:
        store = MongoSaleRepository(connection.open())
        report = sweep_invalid_sales(store, dry_run=args.dry_run)
    except KeyboardInterrupt:
        logger.info("Cleanup interrupted by user", extra={"correlation_id": session_id})
    except Exception:
        logger.critical("Fatal error occurred", exc_info=True, extra={"correlation_id": session_id})
    finally:
        connection.close()

    if report is not None:
        print_report(report, args.sample)


if __name__ == "__main__":
    main()
