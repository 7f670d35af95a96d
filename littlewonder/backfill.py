"""Refill jobs for short (language, age band) cells.

Activities are regenerated in-process through ``run_activity_generation``.
Articles are cloned from rows already in the cell, capped per cell so that
clone accumulation between refill and prune runs stays bounded.
"""
from __future__ import annotations

import logging
import re
import time
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from .activity_generator import run_activity_generation
from .age_bands import ACTIVITY_DEFINITIONS, ARTICLE_DEFINITIONS, AgeBand, band_for_age, unique_bands
from .child_age import age_in_months
from .config import AppConfig, get_config
from .openai_client import LLMCall, json_completion
from .shortages import (
    ARTICLES_TABLE,
    ArticleShortageRecord,
    activity_band_rows,
    article_band_rows,
    scan_activity_shortages,
    scan_article_shortages,
)
from .supabase import SupabaseClient

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Any)

_REFILL_MARKER = re.compile(r"refill-", re.IGNORECASE)
CLONED_COLUMNS = (
    "emoji",
    "title",
    "type",
    "domain",
    "summary",
    "body",
    "read_time_minutes",
    "age_min_months",
    "age_max_months",
    "language",
)


async def active_band_key(
    db: SupabaseClient,
    bands: Sequence[AgeBand],
    today: Optional[date] = None,
) -> Optional[str]:
    """Band containing the age of the earliest-created child, if any."""

    child = await db.select_one(
        "children",
        {"select": "birthdate,created_at", "order": "created_at.asc"},
    )
    if not child or not child.get("birthdate"):
        return None
    band = band_for_age(age_in_months(child["birthdate"], today), bands)
    return band.key if band else None


def prioritize(records: Sequence[R], active_band: Optional[str]) -> List[R]:
    """Active band first, then descending ``missing_total``; ties keep scan order."""

    return sorted(
        records,
        key=lambda record: (
            0 if active_band and record.band_key == active_band else 1,
            -record.missing_total,
        ),
    )


def _throttle(records: List[R], all_cells: bool, band: Optional[str]) -> List[R]:
    if all_cells or band or len(records) <= 1:
        return records
    return records[:1]


def _log_table(title: str, rows: List[Dict[str, Any]]) -> None:
    logger.info(title)
    if not rows:
        logger.info("  (none)")
    for row in rows:
        logger.info("  %s", "  ".join(f"{key}={value}" for key, value in row.items()))


async def refill_activities(
    db: SupabaseClient,
    *,
    language: Optional[str] = None,
    band: Optional[str] = None,
    all_cells: bool = False,
    threshold: Optional[int] = None,
    top_up: Optional[int] = None,
    dry_run: bool = False,
    llm: LLMCall = json_completion,
    config: Optional[AppConfig] = None,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    config = config or get_config()
    bands = unique_bands(ACTIVITY_DEFINITIONS)
    records = await scan_activity_shortages(
        db,
        bands,
        language=language,
        band_key=band,
        threshold=config.activity_threshold if threshold is None else threshold,
        top_up=config.activity_top_up if top_up is None else top_up,
        min_domains=config.min_unique_domains,
        min_schemas=config.min_unique_schemas,
    )
    active = await active_band_key(db, bands, today)
    selected = _throttle(prioritize(records, active), all_cells, band)
    _log_table("Activities shortages detected:", [record.as_row() for record in selected])
    if dry_run:
        return [record.as_row() for record in selected]

    results: List[Dict[str, Any]] = []
    for record in selected:
        logger.info("=== Refill %s %s ===", record.language, record.band_key)
        generated = 0
        if record.missing_total > 0:
            stats = await run_activity_generation(
                db,
                target_count=record.missing_total,
                batch_label=f"refill-{record.band_key}-{record.language}",
                language=record.language,
                age_min=record.band.age_min,
                age_max=record.band.age_max,
                llm=llm,
                config=config,
            )
            generated = stats.success
        elif record.diversity_warning:
            logger.warning(
                "cell meets its count but lacks diversity",
                extra={"language": record.language, "band": record.band_key},
            )

        after = await activity_band_rows(db, record.language, record.band)
        summary = {
            "language": record.language,
            "band": record.band_key,
            "generated": generated,
            "total": len(after),
            "domains": len({row.get("domain") for row in after if row.get("domain")}),
            "schemas": len({row.get("schema_target") for row in after if row.get("schema_target")}),
        }
        logger.info(
            "After refill %s %s: total=%d, domains=%d, schemas=%d",
            record.language,
            record.band_key,
            summary["total"],
            summary["domains"],
            summary["schemas"],
        )
        results.append(summary)
    return results


def build_clones(
    seeds: Sequence[Dict[str, Any]],
    count: int,
    *,
    language: str,
    label: str,
    force_type: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> List[Dict[str, Any]]:
    if count <= 0 or not seeds:
        return []
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    clones = []
    for i in range(count):
        seed = seeds[i % len(seeds)]
        clone = {column: seed.get(column) for column in CLONED_COLUMNS}
        clone["title"] = f"{seed['title']} · {label} {i + 1} · {stamp}"
        clone["type"] = force_type or seed.get("type")
        clone["language"] = language
        clones.append(clone)
    return clones


def existing_clone_count(rows: Sequence[Dict[str, Any]]) -> int:
    return sum(1 for row in rows if _REFILL_MARKER.search(row.get("title") or ""))


def plan_article_clones(
    record: ArticleShortageRecord,
    *,
    max_clones_per_cell: int,
    now_ms: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Clone rows for one short cell, never exceeding the per-cell clone cap."""

    rows = record.rows
    if not rows:
        return []
    allowance = max(0, max_clones_per_cell - existing_clone_count(rows))
    if allowance == 0:
        logger.warning(
            "clone cap reached; run prune-duplicates before refilling again",
            extra={"language": record.language, "band": record.band_key, "cap": max_clones_per_cell},
        )
        return []

    clones: List[Dict[str, Any]] = []
    research_seeds = [row for row in rows if row.get("type") == "research"]
    research_count = min(record.missing_research, allowance)
    if research_count > 0:
        if research_seeds:
            clones.extend(
                build_clones(
                    research_seeds,
                    research_count,
                    language=record.language,
                    label=f"refill-research-{record.band_key}",
                    now_ms=now_ms,
                )
            )
        else:
            clones.extend(
                build_clones(
                    rows,
                    research_count,
                    language=record.language,
                    label=f"refill-cast-research-{record.band_key}",
                    force_type="research",
                    now_ms=now_ms,
                )
            )

    total_count = min(max(0, record.missing_total - len(clones)), allowance - len(clones))
    clones.extend(
        build_clones(
            rows,
            total_count,
            language=record.language,
            label=f"refill-total-{record.band_key}",
            now_ms=now_ms,
        )
    )

    wanted = record.missing_research + max(0, record.missing_total - record.missing_research)
    if len(clones) < wanted:
        logger.warning(
            "clone cap limited refill",
            extra={
                "language": record.language,
                "band": record.band_key,
                "wanted": wanted,
                "cloned": len(clones),
                "cap": max_clones_per_cell,
            },
        )
    return clones


async def insert_in_chunks(
    db: SupabaseClient,
    table: str,
    rows: Sequence[Dict[str, Any]],
    chunk_size: int,
) -> None:
    for index, start in enumerate(range(0, len(rows), chunk_size), start=1):
        chunk = list(rows[start:start + chunk_size])
        logger.info("Inserting chunk %d: %d", index, len(chunk))
        await db.insert(table, chunk)


async def refill_articles(
    db: SupabaseClient,
    *,
    language: Optional[str] = None,
    band: Optional[str] = None,
    all_cells: bool = False,
    dry_run: bool = False,
    config: Optional[AppConfig] = None,
    today: Optional[date] = None,
) -> List[Dict[str, Any]]:
    config = config or get_config()
    bands = unique_bands(ARTICLE_DEFINITIONS)
    records = await scan_article_shortages(
        db,
        bands,
        language=language,
        band_key=band,
        min_total=config.article_min_total,
        min_research=config.article_min_research,
    )
    active = await active_band_key(db, bands, today)
    selected = _throttle(prioritize(records, active), all_cells, band)
    _log_table("Shortages detected:", [record.as_row() for record in selected])
    if dry_run:
        return [record.as_row() for record in selected]

    results: List[Dict[str, Any]] = []
    for record in selected:
        logger.info("=== Refill %s %s ===", record.language, record.band_key)
        if not record.rows:
            logger.warning(
                "no seed articles to clone; run generate-articles for this band",
                extra={"language": record.language, "band": record.band_key},
            )
        clones = plan_article_clones(record, max_clones_per_cell=config.max_clones_per_cell)
        await insert_in_chunks(db, ARTICLES_TABLE, clones, config.refill_chunk_size)

        after = await article_band_rows(db, record.language, record.band)
        research = sum(1 for row in after if row.get("type") == "research")
        logger.info(
            "After refill %s %s: total=%d, research=%d",
            record.language,
            record.band_key,
            len(after),
            research,
        )
        results.append(
            {
                "language": record.language,
                "band": record.band_key,
                "cloned": len(clones),
                "total": len(after),
                "research": research,
            }
        )
    return results
