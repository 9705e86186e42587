"""Command-line entry point.

Usage:
    opportunity-scraper                      # run the scheduler until SIGINT/SIGTERM
    opportunity-scraper scrape               # scrape every feed once
    opportunity-scraper scrape --feed OYAOP  # scrape one feed once
    opportunity-scraper cleanup --days 90    # delete aged opportunities once
    opportunity-scraper feeds                # list registered feeds
    opportunity-scraper help
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from opportunity_scraper.config import settings
from opportunity_scraper.core.logging_config import configure_logging
from opportunity_scraper.scrapers.base import RunSummary
from opportunity_scraper.scrapers.feeds import RSS_FEEDS, get_feed
from opportunity_scraper.scrapers.orchestrator import ScrapeOrchestrator
from opportunity_scraper.scrapers.scheduler import ScraperScheduler

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opportunity-scraper",
        description="Scrape opportunity RSS feeds into the opportunities table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Without a command the scheduler runs until interrupted:
  scrape every CRON_SCHEDULE (default "0 */6 * * *", UTC),
  clean up every Sunday at 02:00 UTC,
  plus one run shortly after startup unless RUN_ON_STARTUP=false.
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")

    scrape = subparsers.add_parser("scrape", help="Scrape all feeds once and exit")
    scrape.add_argument(
        "--feed",
        help="Only scrape the feed with this name (see 'feeds')",
    )

    cleanup = subparsers.add_parser("cleanup", help="Delete aged opportunities once and exit")
    cleanup.add_argument(
        "--days",
        type=int,
        default=None,
        help=f"Retention window in days (default: {settings.RETENTION_DAYS})",
    )

    subparsers.add_parser("feeds", help="List the registered feeds")
    subparsers.add_parser("help", help="Show this message")

    return parser


def print_summary(summary: RunSummary) -> None:
    print(f"\n{'=' * 60}")
    print("  Scrape Summary")
    print(f"{'=' * 60}")
    print(f"  Duration:   {summary.duration:.2f}s")
    print(f"  Feeds:      {summary.total_feeds}")
    print(f"  Processed:  {summary.total_processed}")
    print(f"  Saved:      {summary.total_saved}")
    print(f"  Duplicates: {summary.total_duplicates}")
    print(f"  Errors:     {summary.total_errors}")
    print(f"{'-' * 60}")
    for result in summary.feed_results:
        print(
            f"  {result.feed_name:<30} saved={result.saved} "
            f"duplicates={result.duplicates} errors={result.errors}"
        )
    print(f"{'=' * 60}\n")


def print_feeds() -> None:
    for feed in RSS_FEEDS:
        print(f"{feed.name:<30} {feed.category:<14} {feed.url}")


async def run_scrape(
    session_factory: async_sessionmaker[AsyncSession],
    feed_name: Optional[str] = None,
    **orchestrator_kwargs,
) -> int:
    """Run one scrape and print its summary.

    Args:
        session_factory: Async session factory
        feed_name: Restrict the run to this registered feed
        **orchestrator_kwargs: Passed through to ScrapeOrchestrator

    Returns:
        Process exit code
    """
    feeds = None
    if feed_name:
        feed = get_feed(feed_name)
        if feed is None:
            print(f"Unknown feed '{feed_name}'. Available feeds:", file=sys.stderr)
            for known in RSS_FEEDS:
                print(f"  - {known.name}", file=sys.stderr)
            return 1
        feeds = [feed]

    orchestrator = ScrapeOrchestrator(session_factory, feeds=feeds, **orchestrator_kwargs)
    try:
        summary = await orchestrator.execute_run("cli")
    except Exception as e:
        logger.error("scrape_command_failed", error=str(e), exc_info=True)
        print(f"Scrape failed: {e}", file=sys.stderr)
        return 1

    print_summary(summary)
    return 0


async def run_cleanup(
    session_factory: async_sessionmaker[AsyncSession],
    retention_days: Optional[int] = None,
) -> int:
    """Run one retention cleanup and print the number of deleted rows."""
    orchestrator = ScrapeOrchestrator(session_factory)
    try:
        deleted = await orchestrator.cleanup_old_opportunities(retention_days)
    except Exception as e:
        logger.error("cleanup_command_failed", error=str(e), exc_info=True)
        print(f"Cleanup failed: {e}", file=sys.stderr)
        return 1

    print(f"Deleted {deleted} opportunities")
    return 0


async def run_scheduler(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Run the scheduler until SIGINT or SIGTERM arrives."""
    scheduler = ScraperScheduler(ScrapeOrchestrator(session_factory))
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    scheduler.start()
    logger.info("scheduler_mode_started", jobs=scheduler.get_jobs_status())

    try:
        await stop_event.wait()
        logger.info("shutdown_signal_received")
    finally:
        scheduler.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    return 0


async def _dispatch(args: argparse.Namespace) -> int:
    from opportunity_scraper.db.session import async_session_factory, engine
    from opportunity_scraper.db.utils import init_db

    try:
        await init_db(engine)
        if args.command == "scrape":
            return await run_scrape(async_session_factory, args.feed)
        if args.command == "cleanup":
            return await run_cleanup(async_session_factory, args.days)
        return await run_scheduler(async_session_factory)
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run the requested command.

    Returns:
        Process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "help":
        parser.print_help()
        return 0
    if args.command == "feeds":
        print_feeds()
        return 0

    configure_logging(debug=settings.DEBUG, json_logs=settings.is_production)
    logger.info("opportunity_scraper_starting", command=args.command or "scheduler")

    try:
        return asyncio.run(_dispatch(args))
    except Exception as e:
        logger.error("fatal_error", error=str(e), exc_info=True)
        return 1


def run() -> None:
    sys.exit(main())
