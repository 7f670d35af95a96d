"""LLM-backed activity generation with near-duplicate rejection per (language, band) cell."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .age_bands import ACTIVITY_DEFINITIONS, AgeBand, AgeBandVariant, variants_for_band
from .config import AppConfig, get_config
from .errors import UpstreamError
from .openai_client import LLMCall, call_llm, json_completion, parse_json_payload
from .play_schemas import normalize_schema_key
from .schemas import SUPPORTED_LANGUAGES
from .supabase import SupabaseClient
from .titles import canonical_title_key

logger = logging.getLogger(__name__)

ACTIVITIES_TABLE = "activities"
DEFAULT_BATCH_LABEL = "B1"
DEFAULT_DURATION_MINUTES = 15
MIN_DURATION_MINUTES = 8
MAX_DURATION_MINUTES = 60
MAX_MATERIALS = 7
NO_SCHEMA = "none"

DEFAULT_MATERIALS = {
    "es": ["Papel", "Lápiz", "Objetos de casa"],
    "en": ["Paper", "Pencil", "Household objects"],
}

SYSTEM_PROMPT = """You write high-quality parent activities for Little Wonder.
Return a STRICT JSON object with keys:
emoji, title, subtitle, schema_target, domain, materials, duration_minutes, steps, science_note, is_featured
Rules:
- language must follow the instruction (ES or EN)
- title <= 70 chars, subtitle <= 120 chars
- materials is an array of 3-7 household item strings
- duration_minutes is an integer between 8 and 60
- steps is 5-8 numbered lines separated by \\n newlines (1. ...)
- science_note is 2-4 sentences, clear and warm
- use {child_name} naturally in subtitle, steps and science_note
- never recommend expensive products
- schema_target is one of: trajectory, rotation, enclosure, enveloping, transporting, connecting, transforming, positioning, none
- is_featured is a boolean
- the title must be clearly different from every title listed under "Avoid"
"""


@dataclass
class GenerationStats:
    success: int = 0
    errors: int = 0
    duplicates: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "success": self.success,
            "errors": self.errors,
            "duplicates": self.duplicates,
            "skipped": self.skipped,
        }


class NearDuplicateExhausted(Exception):
    """Every attempt for a unit collided with a recent title in its cell."""


def build_activity_prompt(
    variant: AgeBandVariant,
    language: str,
    batch_label: str,
    iteration: int,
    recent_titles: Sequence[str] = (),
) -> str:
    lines = [
        f"Create one {'actividad' if language == 'es' else 'activity'} for parents.",
        f"Language: {'Spanish (LatAm)' if language == 'es' else 'English'}",
        f"Age band: {variant.age_min}-{variant.age_max} months",
        f"Domain: {variant.domain(language)}",
        f"Suggested schema: {variant.schema_target}",
        f"Focus: {variant.focus(language)}",
        f"Batch label: {batch_label}",
        f"Iteration: {iteration}",
        "Tone: practical, warm, science-grounded.",
    ]
    if recent_titles:
        lines.append("Avoid (already published for this age band):")
        lines.extend(f"- {title}" for title in recent_titles)
    return "\n".join(lines)


def _clamp_duration(value: Any) -> int:
    try:
        minutes = int(float(value))
    except (TypeError, ValueError):
        minutes = 0
    if minutes == 0:
        minutes = DEFAULT_DURATION_MINUTES
    return max(MIN_DURATION_MINUTES, min(MAX_DURATION_MINUTES, minutes))


def _clean_materials(value: Any, language: str) -> List[str]:
    if not isinstance(value, list):
        return list(DEFAULT_MATERIALS.get(language, DEFAULT_MATERIALS["es"]))
    materials = [str(item).strip() for item in value if str(item).strip()]
    if not materials:
        return list(DEFAULT_MATERIALS.get(language, DEFAULT_MATERIALS["es"]))
    return materials[:MAX_MATERIALS]


def _schema_target(item: Dict[str, Any], variant: AgeBandVariant) -> str:
    raw = item.get("schema_target")
    if isinstance(raw, str) and raw.strip().lower() == NO_SCHEMA:
        return NO_SCHEMA
    key = normalize_schema_key(raw)
    if key:
        return key
    return normalize_schema_key(variant.schema_target) or NO_SCHEMA


def build_activity_row(
    variant: AgeBandVariant,
    language: str,
    item: Dict[str, Any],
    batch_label: str,
    index: int,
) -> Dict[str, Any]:
    """Shape an LLM item into the persisted ``activities`` row."""

    title = str(item.get("title") or "").strip()
    if not title:
        raise UpstreamError("Generated activity has no title", provider="openai")
    return {
        "emoji": item.get("emoji") or "✨",
        "title": f"{title} · {batch_label}-{index}",
        "subtitle": item.get("subtitle"),
        "schema_target": _schema_target(item, variant),
        "domain": item.get("domain") or variant.domain(language),
        "materials": _clean_materials(item.get("materials"), language),
        "duration_minutes": _clamp_duration(item.get("duration_minutes")),
        "steps": item.get("steps"),
        "science_note": item.get("science_note"),
        "age_min_months": variant.age_min,
        "age_max_months": variant.age_max,
        "language": language,
        "is_featured": bool(item.get("is_featured")),
    }


async def recent_titles(
    db: SupabaseClient,
    language: str,
    band: AgeBand,
    limit: int = 12,
) -> List[str]:
    if limit <= 0:
        return []
    rows = await db.select(
        ACTIVITIES_TABLE,
        {
            "select": "title",
            "language": f"eq.{language}",
            "age_min_months": f"eq.{band.age_min}",
            "age_max_months": f"eq.{band.age_max}",
            "order": "created_at.desc",
            "limit": str(limit),
        },
    )
    return [row["title"] for row in rows if row.get("title")]


async def generate_unique_activity(
    variant: AgeBandVariant,
    language: str,
    batch_label: str,
    iteration: int,
    recent: Iterable[str],
    *,
    llm: LLMCall,
    max_attempts: int = 4,
    backoff_seconds: float = 0.7,
    prompt_limit: int = 12,
    stats: Optional[GenerationStats] = None,
) -> Optional[Dict[str, Any]]:
    """Ask the LLM for one item whose canonical title is new to the cell.

    Returns ``None`` when every attempt collided with ``recent``. Parse failures
    raise ``LLMResponseError`` and end the unit.
    """

    recent_list = list(recent)
    recent_keys = {canonical_title_key(title) for title in recent_list}
    prompt = build_activity_prompt(variant, language, batch_label, iteration, recent_list[:prompt_limit])
    for attempt in range(1, max_attempts + 1):
        item = parse_json_payload(await call_llm(llm, SYSTEM_PROMPT, prompt))
        key = canonical_title_key(str(item.get("title") or ""))
        if key and key not in recent_keys:
            return item
        if stats is not None:
            stats.duplicates += 1
        logger.info(
            "near-duplicate title rejected",
            extra={"attempt": attempt, "language": language, "band": variant.band_key, "title": item.get("title")},
        )
        if attempt < max_attempts:
            await asyncio.sleep(backoff_seconds)
    return None


def _filter_variants(
    definitions: Sequence[AgeBandVariant],
    age_min: Optional[int],
    age_max: Optional[int],
) -> List[AgeBandVariant]:
    variants = variants_for_band(definitions, age_min=age_min, age_max=age_max)
    if not variants:
        raise ValueError("No activity definitions match the provided age filters")
    return variants


async def run_activity_generation(
    db: SupabaseClient,
    *,
    target_count: int,
    batch_label: str = DEFAULT_BATCH_LABEL,
    language: Optional[str] = None,
    age_min: Optional[int] = None,
    age_max: Optional[int] = None,
    llm: LLMCall = json_completion,
    config: Optional[AppConfig] = None,
    definitions: Sequence[AgeBandVariant] = ACTIVITY_DEFINITIONS,
) -> GenerationStats:
    """Generate ``target_count`` activities, one sequential unit at a time."""

    config = config or get_config()
    variants = _filter_variants(definitions, age_min, age_max)
    languages: Tuple[str, ...] = (language,) if language else SUPPORTED_LANGUAGES
    cycle = len(variants) * len(languages)
    max_failures = max(3, target_count)
    recent_by_cell: Dict[Tuple[str, str], List[str]] = {}
    seen_keys_by_cell: Dict[Tuple[str, str], Set[str]] = {}
    stats = GenerationStats()

    n = 0
    while stats.success < target_count:
        failed_units = stats.errors + stats.skipped
        if failed_units >= max_failures:
            logger.warning(
                "stopping generation after repeated failures",
                extra={"failed_units": failed_units, **stats.as_dict()},
            )
            break

        lang = languages[n % len(languages)]
        variant = variants[(n // len(languages)) % len(variants)]
        iteration = n // cycle + 1
        n += 1

        cell = (lang, variant.band_key)
        if cell not in recent_by_cell:
            titles = await recent_titles(db, lang, variant.band, config.recent_titles_limit)
            recent_by_cell[cell] = titles
            seen_keys_by_cell[cell] = {canonical_title_key(title) for title in titles}

        logger.info("[%d/%d] %s %sm", stats.success + 1, target_count, lang, variant.band_key)
        try:
            item = await generate_unique_activity(
                variant,
                lang,
                batch_label,
                iteration,
                recent_by_cell[cell],
                llm=llm,
                max_attempts=config.max_generation_attempts,
                backoff_seconds=config.duplicate_backoff_seconds,
                prompt_limit=config.recent_titles_limit,
                stats=stats,
            )
            if item is None:
                raise NearDuplicateExhausted(
                    f"no unique title after {config.max_generation_attempts} attempts"
                )
            row = build_activity_row(variant, lang, item, batch_label, stats.success + 1)
            await db.insert(ACTIVITIES_TABLE, row)
        except NearDuplicateExhausted as exc:
            stats.skipped += 1
            logger.warning("unit skipped: %s", exc, extra={"language": lang, "band": variant.band_key})
            await asyncio.sleep(config.error_delay_seconds)
            continue
        except UpstreamError as exc:
            stats.errors += 1
            logger.warning("unit failed: %s", exc, extra={"language": lang, "band": variant.band_key})
            await asyncio.sleep(config.error_delay_seconds)
            continue

        stats.success += 1
        key = canonical_title_key(row["title"])
        if key not in seen_keys_by_cell[cell]:
            seen_keys_by_cell[cell].add(key)
            recent_by_cell[cell].insert(0, row["title"])
        await asyncio.sleep(config.success_delay_seconds)

    logger.info("activity generation finished", extra=stats.as_dict())
    return stats
