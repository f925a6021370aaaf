"""Command line entry point: ``python -m digestbot.pipeline``."""

import argparse
import asyncio
import logging
from typing import List, Optional

from digestbot.core.db import AsyncSessionLocal
from digestbot.core.errors import DigestError
from digestbot.core.logging import get_logger, setup_logging
from digestbot.core.repositories import delete_duplicate_items
from digestbot.core.settings import get_settings
from .factory import build_components
from .orchestrator import PipelineResult, build_request
from .weekly import WeeklyResult

logger = get_logger(__name__)


async def run_summary(source_ids: List[str], limit: int, requester: str, notify: bool) -> PipelineResult:
    request = build_request(source_ids=source_ids, item_limit=limit, requester=requester, notify=notify)
    components = build_components()
    try:
        return await components.pipeline.run(request)
    finally:
        await components.aclose()


async def run_weekly(days: int, recipient: Optional[str] = None) -> WeeklyResult:
    components = build_components()
    try:
        result = await components.weekly.build_weekly_overview(days)
        if recipient and result.overview is not None:
            await components.weekly.deliver(recipient, result)
        return result
    finally:
        await components.aclose()


async def run_dedupe(across_sources: bool = False) -> dict:
    async with AsyncSessionLocal() as session:
        return await delete_duplicate_items(session, across_sources=across_sources)


def _print_summary(result: PipelineResult) -> None:
    report = result.report
    print("\n=== Summary Request Results ===")
    print(f"Request: {result.request_id} ({result.status})")
    print(f"Runtime: {report.runtime_seconds}s")
    print(f"Sources OK: {report.sources_ok}")
    print(f"Sources Skipped: {report.sources_skipped}")
    print(f"Sources Failed: {report.sources_failed}")
    print(f"Items Summarized: {report.items_summarized}")
    print(f"Items Inserted: {report.items_inserted}")
    print(f"Items Already Stored: {report.items_existing}")
    print(f"Items Failed: {report.items_failed}")
    print(f"Trend Analysis: {'yes' if result.trend_analysis else 'no'}")
    print(f"Notification Attempted: {result.notify_attempted}")

    for summary in result.items:
        print(f"\n- [{summary.source_name}] {summary.title}")
        for insight in summary.key_insights[:3]:
            print(f"    * {insight}")

    if result.warning:
        print(f"\nWarning: {result.warning}")

    failures = report.failures()
    if failures:
        print(f"\nErrors ({len(failures)}):")
        for outcome in failures[:10]:
            print(f"  - {outcome.kind} {outcome.key}: {outcome.detail}")
        if len(failures) > 10:
            print(f"  ... and {len(failures) - 10} more")


def _print_weekly(result: WeeklyResult) -> None:
    print("\n=== Weekly Overview ===")
    print(f"Window: {result.date_range['from']} -> {result.date_range['to']}")
    print(f"Items: {result.item_count}")
    if result.overview is None:
        print(result.message)
        return
    print(f"\n{result.overview.executive_summary}")
    for label, values in (
        ("Key Trends", result.overview.key_trends),
        ("Top Insights", result.overview.top_insights),
        ("Recommendations", result.overview.recommendations),
    ):
        print(f"\n{label}:")
        for value in values:
            print(f"  - {value}")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description='Summary pipeline')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    run_parser = subparsers.add_parser('run', help='Summarize recent items of some sources')
    run_parser.add_argument('source_ids', nargs='+', help='Catalog source ids')
    run_parser.add_argument(
        '--limit',
        type=int,
        default=settings.default_item_limit,
        help=f'Items per source (default: {settings.default_item_limit})'
    )
    run_parser.add_argument('--requester', default=settings.default_requester, help='Requester email')
    run_parser.add_argument('--notify', action='store_true', help='Email the results to the requester')

    weekly_parser = subparsers.add_parser('weekly', help='Overview of items stored in a trailing window')
    weekly_parser.add_argument(
        '--days',
        type=int,
        default=settings.default_window_days,
        help=f'Window length in days (default: {settings.default_window_days})'
    )
    weekly_parser.add_argument('--email', help='Send the overview to this address')

    dedupe_parser = subparsers.add_parser('dedupe', help='Delete duplicate stored items')
    dedupe_parser.add_argument(
        '--across-sources',
        action='store_true',
        help='Treat equal titles under different sources as duplicates'
    )

    args = parser.parse_args(argv)

    setup_logging("pipeline")
    if args.verbose:
        logging.getLogger('digestbot').setLevel(logging.DEBUG)

    try:
        if args.command == 'run':
            result = asyncio.run(run_summary(args.source_ids, args.limit, args.requester, args.notify))
            _print_summary(result)
            return 0 if result.status == "completed" else 1

        if args.command == 'weekly':
            _print_weekly(asyncio.run(run_weekly(args.days, args.email)))
            return 0

        stats = asyncio.run(run_dedupe(args.across_sources))
        print("\n=== Duplicate Cleanup ===")
        print(f"Deleted: {stats['deleted_count']}")
        return 0

    except DigestError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"\nError: {e}")
        return 1
