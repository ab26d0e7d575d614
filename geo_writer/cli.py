"""
Command line for GEO Writer.

Usage:
    python -m geo_writer batch --csv tasks.csv
    python -m geo_writer batch --csv tasks.csv --require-tracker
    python -m geo_writer article --account <uuid> [--keywords "a,b"] [--no-publish] [--json]
    python -m geo_writer context --account <uuid>

Configuration comes from the environment; a ``.env`` file in the working
directory is loaded first.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import AsyncExitStack
from typing import List, Optional

from dotenv import load_dotenv

from geo_writer import __version__
from geo_writer.article_pipeline import ArticleAssembler
from geo_writer.batch_orchestrator import BatchOrchestrator
from geo_writer.brief_client import BriefClient
from geo_writer.config import PacingConfig, Settings
from geo_writer.content_generator import ContentGenerator
from geo_writer.csv_loader import load_csv
from geo_writer.exceptions import BatchAbortedError, GeoWriterError
from geo_writer.image_generator import ImageGenerator
from geo_writer.run_log import configure_logging
from geo_writer.tracker_client import ClickUpClient, ProdlineClient
from geo_writer.wordpress_client import WordPressClient


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="python -m geo_writer",
        description="GEO Writer -- SEO article production and publishing",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- batch ---
    batch_parser = subparsers.add_parser("batch", help="Produce and publish every article in a CSV")
    batch_parser.add_argument("--csv", required=True, help="CSV with account_uuid, kw, task_count")
    batch_parser.add_argument(
        "--require-tracker", action="store_true",
        help="Require the task_clickup_ids column and a tracker key",
    )
    batch_parser.add_argument("--no-trackers", action="store_true", help="Skip tracker updates")
    batch_parser.add_argument("--no-pacing", action="store_true", help="Disable pauses between steps")

    # --- article ---
    article_parser = subparsers.add_parser("article", help="Produce one article for an account")
    article_parser.add_argument("--account", required=True, help="Account UUID")
    article_parser.add_argument("--keywords", help="Comma-separated keywords (default: generated)")
    article_parser.add_argument("--no-publish", action="store_true", help="Do not publish the article")
    article_parser.add_argument("--json", action="store_true", help="Print the article as JSON")

    # --- context ---
    context_parser = subparsers.add_parser("context", help="Show the context extracted from a brief")
    context_parser.add_argument("--account", required=True, help="Account UUID")

    return parser


def _brief_client(settings: Settings) -> BriefClient:
    return BriefClient(
        bearer_token=settings.orbidi_bearer_token,
        api_key=settings.orbidi_api_key,
        base_url=settings.orbidi_base_url,
    )


def _wordpress_client(settings: Settings) -> WordPressClient:
    return WordPressClient(
        base_url=settings.wordpress_base_url,
        auth_token=settings.wordpress_token,
        category_name=settings.wordpress_category,
    )


def _assembler(settings: Settings, pacing: PacingConfig) -> ArticleAssembler:
    generator = ContentGenerator(api_key=settings.anthropic_api_key, model=settings.text_model)
    images = ImageGenerator(api_key=settings.gemini_api_key, model=settings.image_model)
    return ArticleAssembler(generator, images, pacing=pacing)


async def _cmd_batch(args: argparse.Namespace, settings: Settings) -> int:
    rows = load_csv(args.csv, require_tracker=args.require_tracker)
    required = ["orbidi_bearer_token", "anthropic_api_key", "gemini_api_key", "wordpress_token"]
    if args.require_tracker:
        required.append("clickup_api_key")
    settings.require(*required)
    pacing = PacingConfig.disabled() if args.no_pacing else settings.pacing

    async with AsyncExitStack() as stack:
        assembler = _assembler(settings, pacing)
        tracker = secondary = None
        if not args.no_trackers:
            if settings.has_clickup:
                tracker = await stack.enter_async_context(ClickUpClient(
                    settings.clickup_api_key,
                    url_field_id=settings.clickup_url_field_id,
                    status_field_id=settings.clickup_status_field_id,
                ))
            if settings.has_prodline:
                secondary = await stack.enter_async_context(
                    ProdlineClient(settings.prodline_api_key, base_url=settings.orbidi_base_url)
                )
        orchestrator = BatchOrchestrator(
            brief_client=await stack.enter_async_context(_brief_client(settings)),
            generator=assembler.generator,
            assembler=assembler,
            publisher=await stack.enter_async_context(_wordpress_client(settings)),
            tracker=tracker,
            secondary_tracker=secondary,
            pacing=pacing,
        )

        try:
            result = await orchestrator.run(rows)
        except BatchAbortedError as exc:
            print(f"\nBatch aborted: {exc}", file=sys.stderr)
            if exc.progress is not None and exc.progress.published_urls:
                print("Already published:", file=sys.stderr)
                for url in exc.progress.published_urls:
                    print(f"  {url}", file=sys.stderr)
            return 1

    urls = result.progress.published_urls
    print(f"\nPublished {len(urls)} articles:")
    for account_uuid, account_urls in result.account_urls.items():
        print(f"  {account_uuid}")
        for url in account_urls:
            print(f"    {url}")
    if result.tracker_report is not None:
        report = result.tracker_report
        print(f"\nTracker: {report.completed}/{report.attempted} tasks completed")
        for task_id in report.failed_task_ids:
            print(f"  failed: {task_id}")
    if result.secondary_report is not None:
        report = result.secondary_report
        print(f"Secondary tracker: {report.completed}/{report.attempted} tasks updated")
    return 0


async def _cmd_article(args: argparse.Namespace, settings: Settings) -> int:
    required = ["orbidi_bearer_token", "anthropic_api_key", "gemini_api_key"]
    if not args.no_publish:
        required.append("wordpress_token")
    settings.require(*required)
    keywords: Optional[List[str]] = None
    if args.keywords:
        keywords = [k.strip() for k in args.keywords.split(",") if k.strip()]

    async with AsyncExitStack() as stack:
        assembler = _assembler(settings, settings.pacing)
        publisher = None
        if not args.no_publish:
            publisher = await stack.enter_async_context(_wordpress_client(settings))
        orchestrator = BatchOrchestrator(
            brief_client=await stack.enter_async_context(_brief_client(settings)),
            generator=assembler.generator,
            assembler=assembler,
            publisher=publisher,
            pacing=settings.pacing,
        )
        result = await orchestrator.produce_single_article(
            args.account, keywords=keywords, publish=not args.no_publish
        )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return 0

    print(f"\nTitle:    {result.article.title}")
    print(f"Sections: {len(result.article.sections)}")
    print(f"Links:    {result.anchors}")
    print(f"Website:  {result.website or '-'}")
    print(f"URL:      {result.url or '(not published)'}")
    return 0


async def _cmd_context(args: argparse.Namespace, settings: Settings) -> int:
    settings.require("orbidi_bearer_token")
    async with _brief_client(settings) as client:
        brief = await client.fetch(args.account)
    print(f"Format:  {'HTML' if brief.is_html else 'JSON'}")
    print(f"Website: {brief.website or '-'}")
    print(f"Context ({len(brief.context)} chars):\n")
    print(brief.context)
    return 0


async def _cli_main(args: argparse.Namespace, settings: Optional[Settings] = None) -> int:
    """Execute the CLI command (async)."""
    settings = settings or Settings.from_env()
    command_map = {
        "batch": _cmd_batch,
        "article": _cmd_article,
        "context": _cmd_context,
    }
    handler = command_map.get(args.command)
    if handler is None:
        print("No command specified. Use --help for usage.")
        return 1
    try:
        return await handler(args, settings)
    except GeoWriterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    load_dotenv()
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    return asyncio.run(_cli_main(args))


def cli_entry() -> None:
    """Entry point for ``python -m geo_writer`` and the ``geo-writer`` script."""
    sys.exit(main())
