#!/usr/bin/env python3
"""
Run one price reconciliation from the command line.

Same job the daily Celery task runs, useful for backfills and for
checking configuration against a real database.

Usage:
    # Run with the configured timeout and commit size
    python -m mtg_report.scripts.reconcile_prices

    # Give the run more time and write smaller batches
    python -m mtg_report.scripts.reconcile_prices --timeout 600 --commit-size 200

    # Exit non-zero when no card was updated (for cron alerting)
    python -m mtg_report.scripts.reconcile_prices --fail-on-empty

Exit codes:
    0 - run completed
    1 - run could not be started or crashed
    2 - --fail-on-empty was given and no card was updated
"""
import argparse
import asyncio
import sys

import structlog

from mtg_report.core.config import get_settings
from mtg_report.core.logging import setup_logging
from mtg_report.tasks.reconciliation import run_reconciliation_job

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOTHING_UPDATED = 2


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile card prices against Scryfall")
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help="Deadline for the whole run in seconds (default: RECONCILE_TIMEOUT_SECONDS)",
    )
    parser.add_argument(
        "--commit-size",
        type=_positive_int,
        default=None,
        help="Cards per page and per write batch (default: RECONCILE_COMMIT_SIZE)",
    )
    parser.add_argument(
        "--fail-on-empty",
        action="store_true",
        help="Exit with status 2 when no card was updated",
    )
    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    setup_logging(settings)

    try:
        result = await run_reconciliation_job(
            settings,
            timeout_seconds=args.timeout,
            commit_size=args.commit_size,
        )
    except Exception as e:
        logger.error("Price reconciliation failed", error=str(e), exc_info=True)
        return EXIT_ERROR

    print(f"Cards updated: {result.cards_updated}")
    print(f"Started:       {result.started_at}")
    print(f"Completed:     {result.completed_at}")
    if result.stats.get("stop_reason"):
        print(f"Stop reason:   {result.stats['stop_reason']}")

    if args.fail_on_empty and result.cards_updated == 0:
        return EXIT_NOTHING_UPDATED
    return EXIT_OK


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
