"""Long-form explore article generation from the article catalog."""
from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Dict, List, Optional, Sequence, Tuple

from .activity_generator import GenerationStats
from .age_bands import ARTICLE_DEFINITIONS, ArticleDefinition
from .config import AppConfig, get_config
from .errors import UpstreamError
from .openai_client import LLMCall, article_completion, call_llm
from .schemas import SUPPORTED_LANGUAGES
from .supabase import SupabaseClient, in_filter

logger = logging.getLogger(__name__)

ARTICLES_TABLE = "explore_articles"
SHORT_BODY_CHARS = 2000
WORDS_PER_MINUTE = 180
MIN_READ_MINUTES = 5
SUMMARY_MAX_CHARS = 180

SYSTEM_PROMPT = """You are the editorial voice of Little Wonder, a curiosity companion app for parents.
Write warm, science-grounded long-form content (800-1200 words) with practical guidance.

CRITICAL FORMAT (markdown is required because the app renders styled cards from these markers):
- Use markdown headings with ##
- Use the {child_name} placeholder naturally (exact snake_case)
- Include these blocks in this order at least once:
  1) Hook paragraphs
  2) ## Science section(s)
  3) > 💡 Pull quote sentence
  4) > 🔬 **Short science title** science explanation paragraph
  5) ---
  6) ## Practical response section
  7) 1. **Title** - explanation
  8) 2. **Title** - explanation
  9) 3. **Title** - explanation
  10) > 🌱 Practical home action paragraph
  11) ---
  12) > 💛 Warm emotional closing paragraph
- Include specific researchers and findings in plain language
- Never use pathologizing language or compare children
- Never suggest expensive products
- Output markdown only (no JSON, no code fences)
Return ONLY the article body text."""

DOMAIN_EMOJI = {
    "Visual Development": "👀",
    "Language": "🗣️",
    "Social-Emotional": "🤱",
    "Sensory Exploration": "👄",
    "Cognitive Development": "🧠",
    "Cognitive": "🧠",
    "Scientific Thinking": "🔬",
    "Motor & Cognitive": "🚶",
    "Autonomy": "✊",
    "Emotional Regulation": "💛",
    "Causal Thinking": "❓",
    "Learning": "📚",
    "Social": "👫",
    "Motivation": "🔥",
    "School Readiness": "🎒",
    "Technology": "📱",
    "Creativity": "🎨",
    "Communication": "💬",
    "Neuroscience": "🧪",
    "Critical Thinking": "📰",
    "Identity": "🪞",
    "Purpose": "🧭",
    "Attachment": "🤝",
}

_AGE_DESCRIPTIONS: List[Tuple[int, str]] = [
    (4, "newborn (0-4 months)"),
    (8, "baby (4-8 months)"),
    (14, "baby/young toddler (8-14 months)"),
    (24, "toddler (14-24 months)"),
    (36, "toddler (2-3 years)"),
    (48, "preschooler (3-4 years)"),
    (60, "preschooler (4-5 years)"),
    (84, "young child (5-7 years)"),
    (108, "child (7-9 years)"),
    (132, "older child (9-11 years)"),
]

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def pick_emoji(domain: str) -> str:
    if domain in DOMAIN_EMOJI:
        return DOMAIN_EMOJI[domain]
    lowered = domain.lower()
    for name, emoji in DOMAIN_EMOJI.items():
        if name.lower() in lowered:
            return emoji
    return "✨"


def age_description(age_max: int) -> str:
    for upper, label in _AGE_DESCRIPTIONS:
        if age_max <= upper:
            return label
    return "pre-teen (11-12 years)"


def word_count(body: str) -> int:
    return len(body.split())


def estimate_read_time(body: str) -> int:
    return max(MIN_READ_MINUTES, math.ceil(word_count(body) / WORDS_PER_MINUTE))


def generate_summary(body: str) -> str:
    clean = " ".join(body.split())
    sentence = _SENTENCE_BREAK.split(clean, maxsplit=1)[0] if clean else ""
    return (sentence or clean)[:SUMMARY_MAX_CHARS]


def build_article_prompt(definition: ArticleDefinition, language: str) -> str:
    if language == "es":
        language_instruction = "Write in Spanish (LatAm), warm and natural. Use tú, never usted."
    else:
        language_instruction = "Write in English."
    return (
        f"Write a full article (800-1200 words) for parents of a {age_description(definition.age_max)} "
        f'on topic: "{definition.title(language)}".\n'
        f"Science to weave in naturally: {definition.key_science}.\n"
        f"{language_instruction}\n"
        "Use {child_name} placeholder throughout."
    )


def variant_label(batch_label: str, variant_index: int) -> str:
    if batch_label:
        return f"· {batch_label}-{variant_index}"
    if variant_index > 1:
        return f"· v{variant_index}"
    return ""


def article_title(definition: ArticleDefinition, language: str, label: str = "") -> str:
    base = definition.title(language)
    base = base[:1].upper() + base[1:]
    return f"{base} {label}" if label else base


def build_article_row(
    definition: ArticleDefinition,
    language: str,
    body: str,
    title: str,
) -> Dict[str, object]:
    return {
        "emoji": pick_emoji(definition.domain_en),
        "title": title,
        "type": definition.type,
        "domain": definition.domain(language),
        "summary": generate_summary(body),
        "body": body,
        "read_time_minutes": estimate_read_time(body),
        "age_min_months": definition.age_min,
        "age_max_months": definition.age_max,
        "language": language,
    }


async def title_exists(db: SupabaseClient, title: str, language: str) -> bool:
    row = await db.select_one(
        ARTICLES_TABLE,
        {"select": "id", "title": f"eq.{title}", "language": f"eq.{language}"},
    )
    return row is not None


async def delete_short_articles(db: SupabaseClient, min_chars: int = SHORT_BODY_CHARS) -> int:
    rows = await db.select(ARTICLES_TABLE, {"select": "id,body"})
    short_ids = [row["id"] for row in rows if len(row.get("body") or "") < min_chars]
    for start in range(0, len(short_ids), 200):
        chunk = short_ids[start:start + 200]
        await db.delete(ARTICLES_TABLE, {"id": in_filter(chunk)})
    logger.info("deleted short articles", extra={"count": len(short_ids), "min_chars": min_chars})
    return len(short_ids)


def filter_definitions(
    definitions: Sequence[ArticleDefinition],
    *,
    age_min: Optional[int] = None,
    age_max: Optional[int] = None,
    article_type: Optional[str] = None,
) -> List[ArticleDefinition]:
    return [
        definition
        for definition in definitions
        if (age_min is None or definition.age_min == age_min)
        and (age_max is None or definition.age_max == age_max)
        and (article_type is None or definition.type == article_type)
    ]


async def run_article_generation(
    db: SupabaseClient,
    *,
    limit: Optional[int] = None,
    target_count: Optional[int] = None,
    batch_label: str = "",
    language: Optional[str] = None,
    age_min: Optional[int] = None,
    age_max: Optional[int] = None,
    article_type: Optional[str] = None,
    allow_duplicates: bool = False,
    delete_short: bool = False,
    llm: LLMCall = article_completion,
    config: Optional[AppConfig] = None,
    definitions: Sequence[ArticleDefinition] = ARTICLE_DEFINITIONS,
) -> GenerationStats:
    config = config or get_config()
    filtered = filter_definitions(definitions, age_min=age_min, age_max=age_max, article_type=article_type)
    if not filtered:
        raise ValueError("No article definitions match the provided filters")

    capped = min(limit or len(filtered), len(filtered))
    languages: Tuple[str, ...] = (language,) if language else SUPPORTED_LANGUAGES
    cycle = capped * len(languages)
    target = target_count if target_count is not None else cycle
    max_failures = max(3, target)

    if delete_short:
        await delete_short_articles(db)

    stats = GenerationStats()
    i = 0
    while stats.success < target:
        if stats.errors >= max_failures:
            logger.warning("stopping article generation after repeated failures", extra=stats.as_dict())
            break

        definition = filtered[(i // len(languages)) % capped]
        lang = languages[i % len(languages)]
        label = variant_label(batch_label, i // cycle + 1)
        i += 1

        title = article_title(definition, lang, label)
        try:
            if not allow_duplicates and await title_exists(db, title, lang):
                logger.info("  - %s: skip (%s)", lang, title)
                stats.skipped += 1
                continue

            logger.info(
                "[%d/%d] %s | %sm | %s",
                stats.success + 1,
                target,
                lang,
                definition.band.key,
                definition.domain_en,
            )
            body = (await call_llm(llm, SYSTEM_PROMPT, build_article_prompt(definition, lang))).strip()
            if not body:
                raise UpstreamError("Generated article is empty", provider="openai")
            saved = await db.insert(ARTICLES_TABLE, build_article_row(definition, lang, body, title))
        except UpstreamError as exc:
            stats.errors += 1
            logger.warning("  x %s: %s", lang, exc)
            await asyncio.sleep(config.article_error_delay_seconds)
            continue

        stats.success += 1
        saved_id = saved[0].get("id") if saved else None
        logger.info("  + saved %s (%d words, %d min)", saved_id, word_count(body), estimate_read_time(body))
        await asyncio.sleep(config.article_success_delay_seconds)

    logger.info("article generation finished", extra=stats.as_dict())
    return stats
