# src/main.py
"""CLI entry point: enrich, batch, usage, cache-cleanup commands.

Usage:
    pawmatch --items animals.json enrich <item_id> [--no-ai] [--images] [--force]
    pawmatch --items animals.json batch [--source S] [--limit N] [--ai]
    pawmatch usage
    pawmatch cache-cleanup

Exit codes: 0 success, 1 error, 2 bad request or unknown item, 130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pawmatch.api.errors import PawmatchError
from pawmatch.version import __version__

if TYPE_CHECKING:
    from pawmatch.api.facade import PawmatchService
    from pawmatch.config.settings import Settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BAD_REQUEST = 2
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    try:
        from pawmatch.config.settings import load_settings

        settings = load_settings()
        _setup_logging(settings, args.verbose)
        return asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except PawmatchError as exc:
        logger.error("%s", exc)
        return EXIT_BAD_REQUEST
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_ERROR


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="pawmatch",
        description=f"pawmatch v{__version__}: AI enrichment for adoptable-pet listings",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--items", type=Path, default=None,
        help="JSON file of upstream records (each tagged with its 'kind')",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- enrich ---
    p_enrich = subparsers.add_parser("enrich", help="Enrich a single item")
    p_enrich.add_argument("item_id", help="Item id")
    p_enrich.add_argument(
        "--ai", action=argparse.BooleanOptionalAction, default=True,
        help="Generate an AI bio (default: on)",
    )
    p_enrich.add_argument(
        "--images", action="store_true",
        help="Also run image analysis",
    )
    p_enrich.add_argument(
        "--force", action="store_true",
        help="Ignore stored content and recompute",
    )
    p_enrich.set_defaults(func=_cmd_enrich)

    # --- batch ---
    p_batch = subparsers.add_parser("batch", help="Enrich many items")
    p_batch.add_argument("--source", default="all", help="Only items from this source")
    p_batch.add_argument("--limit", type=int, default=100, help="Max items (capped at 500)")
    p_batch.add_argument("--ai", action="store_true", help="Generate AI bios")
    p_batch.add_argument(
        "--threshold", type=float, default=None,
        help="Stop once this fraction of the daily budget is spent (default: 0.5)",
    )
    p_batch.add_argument("--chunk-size", type=int, default=None, help="Items per chunk")
    p_batch.add_argument(
        "--delay-ms", type=int, default=None,
        help="Pause between chunks (default: 500, or 2000 with --ai)",
    )
    p_batch.set_defaults(func=_cmd_batch)

    # --- usage ---
    p_usage = subparsers.add_parser("usage", help="Show today's inference usage")
    p_usage.set_defaults(func=_cmd_usage)

    # --- cache-cleanup ---
    p_cleanup = subparsers.add_parser("cache-cleanup", help="Purge expired cache entries")
    p_cleanup.set_defaults(func=_cmd_cache_cleanup)

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    from pawmatch.api.facade import build_service
    from pawmatch.sources.file_source import JsonFileItemSource

    source = None
    if args.items is not None:
        if not args.items.is_file():
            logger.error("Items file not found: %s", args.items)
            return EXIT_ERROR
        source = JsonFileItemSource(args.items)

    service = build_service(settings, source=source)
    try:
        return await args.func(args, service)
    finally:
        service.close()


async def _cmd_enrich(args: argparse.Namespace, service: PawmatchService) -> int:
    result = await service.enrich_item(
        args.item_id,
        run_ai=args.ai,
        run_image_analysis=args.images,
        force_refresh=args.force,
    )
    print(result.model_dump_json(indent=2))
    return EXIT_OK


async def _cmd_batch(args: argparse.Namespace, service: PawmatchService) -> int:
    from pawmatch.api.models import BatchEnrichRequest

    settings = service.settings
    request = BatchEnrichRequest(
        source_filter=args.source,
        item_limit=args.limit,
        run_ai=args.ai,
        budget_threshold=(
            args.threshold if args.threshold is not None
            else settings.batch_default_budget_threshold
        ),
        chunk_size=args.chunk_size or settings.batch_default_chunk_size,
        delay_ms=args.delay_ms,
    )
    response = await service.run_batch_enrichment(request)
    stats = response.stats

    print(f"\n{response.message}")
    print(f"  Enriched:      {stats.enriched}")
    print(f"  Skipped:       {stats.skipped}")
    print(f"  AI generated:  {stats.ai_generated}")
    print(f"  Failed:        {stats.failed}")
    print(f"  Tokens used:   {stats.tokens_used}")
    print(f"  Stopped early: {stats.stopped_early}")
    return EXIT_OK


async def _cmd_usage(args: argparse.Namespace, service: PawmatchService) -> int:
    stats = await service.usage()
    if stats is None:
        print("Usage store unavailable")
        return EXIT_ERROR

    print(f"\nUsage for {stats.date}:")
    print(f"  Requests:         {stats.total_requests}")
    print(f"  Tokens:           {stats.total_tokens}")
    print(f"  Estimated cost:   ${stats.estimated_cost:.4f}")
    print(f"  Budget remaining: ${stats.budget_remaining:.4f}")
    rate = service.governor.rate
    print(f"  Hourly requests:  {rate.count}/{rate.limit} ({rate.remaining()} left)")
    return EXIT_OK


async def _cmd_cache_cleanup(args: argparse.Namespace, service: PawmatchService) -> int:
    removed = await service.cache_cleanup()
    print(f"Removed {removed} expired cache entries")
    return EXIT_OK


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from pawmatch.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    import sys

    sys.exit(main())
