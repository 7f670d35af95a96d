"""Command line entry point for the batch content jobs.

Each subcommand runs one job against the datastore with the service-role
client and prints a JSON summary of what it did.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import sys
from typing import Any, Optional

from dotenv import find_dotenv, load_dotenv

from .activity_generator import run_activity_generation
from .age_bands import parse_band_key
from .article_generator import run_article_generation
from .backfill import refill_activities, refill_articles
from .config import get_config, require_openai_key
from .pruning import PRUNABLE_TABLES, prune_duplicates
from .schemas import ARTICLE_TYPES, SUPPORTED_LANGUAGES
from .supabase import get_admin_client

logger = logging.getLogger(__name__)

BATCH_LABEL_PATTERN = re.compile(r"^B\d+\Z", re.IGNORECASE)


def _band(value: str) -> str:
    try:
        parse_band_key(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _batch_label(value: str) -> str:
    if value and not BATCH_LABEL_PATTERN.match(value):
        raise argparse.ArgumentTypeError(f"Batch label must look like B<number>, got {value!r}")
    return value


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="littlewonder",
        description="Little Wonder content generation, backfill and pruning jobs",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available jobs")

    activities = subparsers.add_parser("generate-activities", help="Generate play activities with the LLM")
    activities.add_argument("--target-count", type=int, default=64, help="Number of activities to create")
    activities.add_argument(
        "--batch-label", type=_batch_label, default="B1", help="Batch label appended to titles (B<number>)"
    )
    activities.add_argument("--age-min", type=int, help="Only the band starting at this month")
    activities.add_argument("--age-max", type=int, help="Only the band ending at this month")
    activities.add_argument("--lang", choices=SUPPORTED_LANGUAGES, help="Single language (default both)")

    articles = subparsers.add_parser("generate-articles", help="Generate explore articles with the LLM")
    articles.add_argument("--limit", type=int, help="Use at most this many definitions")
    articles.add_argument("--target-count", type=int, help="Number of articles to create")
    articles.add_argument(
        "--batch-label", type=_batch_label, default="", help="Batch label appended to titles (B<number>)"
    )
    articles.add_argument("--age-min", type=int, help="Only the band starting at this month")
    articles.add_argument("--age-max", type=int, help="Only the band ending at this month")
    articles.add_argument("--lang", choices=SUPPORTED_LANGUAGES, help="Single language (default both)")
    articles.add_argument("--type", dest="article_type", choices=ARTICLE_TYPES)
    articles.add_argument("--allow-duplicates", action="store_true", help="Insert even when the title exists")
    articles.add_argument("--delete-short", action="store_true", help="Delete articles under 2000 characters first")

    refill_acts = subparsers.add_parser("refill-activities", help="Top up short activity cells")
    refill_acts.add_argument("--language", choices=SUPPORTED_LANGUAGES)
    refill_acts.add_argument("--band", type=_band, help="Band key such as 14-24")
    refill_acts.add_argument("--all", dest="all_cells", action="store_true", help="Refill every short cell")
    refill_acts.add_argument("--threshold", type=int, help="Minimum activities per cell")
    refill_acts.add_argument("--proactive-topup", dest="top_up", type=int, help="Extra margin above the threshold")
    refill_acts.add_argument("--dry-run", action="store_true", help="Report shortages without generating")

    refill_explore = subparsers.add_parser("refill-explore", help="Top up short article cells by cloning")
    refill_explore.add_argument("--language", choices=SUPPORTED_LANGUAGES)
    refill_explore.add_argument("--band", type=_band, help="Band key such as 14-24")
    refill_explore.add_argument("--all", dest="all_cells", action="store_true", help="Refill every short cell")
    refill_explore.add_argument("--dry-run", action="store_true", help="Report shortages without inserting")

    prune = subparsers.add_parser("prune-duplicates", help="Delete duplicate titles, keeping the cleanest")
    prune.add_argument("--table", default="explore_articles", choices=PRUNABLE_TABLES)
    prune.add_argument("--dry-run", action="store_true", help="Report without deleting")

    return parser


async def _dispatch(parsed: argparse.Namespace) -> Any:
    db = get_admin_client()
    if parsed.command == "generate-activities":
        require_openai_key(get_config())
        stats = await run_activity_generation(
            db,
            target_count=parsed.target_count,
            batch_label=parsed.batch_label,
            language=parsed.lang,
            age_min=parsed.age_min,
            age_max=parsed.age_max,
        )
        return stats.as_dict()
    if parsed.command == "generate-articles":
        require_openai_key(get_config())
        stats = await run_article_generation(
            db,
            limit=parsed.limit,
            target_count=parsed.target_count,
            batch_label=parsed.batch_label,
            language=parsed.lang,
            age_min=parsed.age_min,
            age_max=parsed.age_max,
            article_type=parsed.article_type,
            allow_duplicates=parsed.allow_duplicates,
            delete_short=parsed.delete_short,
        )
        return stats.as_dict()
    if parsed.command == "refill-activities":
        if not parsed.dry_run:
            require_openai_key(get_config())
        return await refill_activities(
            db,
            language=parsed.language,
            band=parsed.band,
            all_cells=parsed.all_cells,
            threshold=parsed.threshold,
            top_up=parsed.top_up,
            dry_run=parsed.dry_run,
        )
    if parsed.command == "refill-explore":
        return await refill_articles(
            db,
            language=parsed.language,
            band=parsed.band,
            all_cells=parsed.all_cells,
            dry_run=parsed.dry_run,
        )
    if parsed.command == "prune-duplicates":
        return await prune_duplicates(db, table=parsed.table, dry_run=parsed.dry_run)
    raise ValueError(f"Unknown command {parsed.command!r}")


def run_cli(args: Optional[list] = None) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)
    if not parsed.command:
        parser.print_help()
        return 1

    load_dotenv(find_dotenv(usecwd=True), override=False)
    logging.basicConfig(
        level=getattr(logging, parsed.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(_dispatch(parsed))
    except (RuntimeError, ValueError) as exc:
        logger.error("%s failed: %s", parsed.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
