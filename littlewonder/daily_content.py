"""Per-child daily stage content, generated once per local calendar day and cached."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from .child_age import age_in_months, format_age_label
from .errors import LLMResponseError
from .openai_client import LLMCall, call_llm, extract_json_object, json_completion
from .supabase import SupabaseClient

logger = logging.getLogger(__name__)

DAILY_CONTENT_TABLE = "daily_content"


@dataclass(frozen=True)
class PromptLibrary:
    """Prompt templates loaded once at process start."""

    stage_prompt: str

    @classmethod
    def load(cls, stage_prompt_path: Path) -> "PromptLibrary":
        return cls(stage_prompt=Path(stage_prompt_path).read_text(encoding="utf-8"))


def local_date_parts(now: Optional[datetime] = None, tz_name: str = "America/Bogota") -> Tuple[str, int]:
    """Local calendar date (``YYYY-MM-DD``) and ``day_of_year % 10`` in ``tz_name``."""

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    local = current.astimezone(ZoneInfo(tz_name))
    return local.date().isoformat(), local.timetuple().tm_yday % 10


def language_from_header(accept_language: Optional[str]) -> str:
    return "es" if (accept_language or "").strip().lower().startswith("es") else "en"


def render_stage_prompt(
    template: str,
    *,
    child_name: str,
    age_months: int,
    age_label: str,
    day_seed: int,
) -> str:
    return (
        template.replace("{{child_name}}", child_name)
        .replace("{{child_age_months}}", str(age_months))
        .replace("{{child_age_label}}", age_label)
        .replace("{{day_seed}}", str(day_seed))
    )


def build_user_prompt(child_name: str, day_seed: int, language: str) -> str:
    return "\n".join(
        [
            f"Generate today's daily stage content for {child_name}.",
            f"day_seed={day_seed}",
            "Responde en español." if language == "es" else "Respond in English.",
            "Return only valid JSON. No markdown.",
        ]
    )


async def cached_content(db: SupabaseClient, child_id: str, day: str) -> Optional[Any]:
    row = await db.select_one(
        DAILY_CONTENT_TABLE,
        {"select": "child_id,date,content", "child_id": f"eq.{child_id}", "date": f"eq.{day}"},
    )
    return row.get("content") if row else None


async def generate_daily_content(
    db: SupabaseClient,
    child: Dict[str, Any],
    prompts: PromptLibrary,
    *,
    language: str = "en",
    llm: LLMCall = json_completion,
    tz_name: str = "America/Bogota",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    day, day_seed = local_date_parts(now, tz_name)
    cached = await cached_content(db, child["id"], day)
    if cached:
        return {"source": "cache", "content": cached}

    age_months = age_in_months(child["birthdate"]) if child.get("birthdate") else 0
    child_name = child.get("name") or ""
    system = render_stage_prompt(
        prompts.stage_prompt,
        child_name=child_name,
        age_months=age_months,
        age_label=format_age_label(age_months, language),
        day_seed=day_seed,
    )
    raw = await call_llm(llm, system, build_user_prompt(child_name, day_seed, language))
    parsed = extract_json_object(raw)
    if not parsed:
        raise LLMResponseError("Could not generate valid daily content.", raw=raw)

    await db.upsert(
        DAILY_CONTENT_TABLE,
        {"child_id": child["id"], "date": day, "content": parsed},
        on_conflict="child_id,date",
    )
    logger.info("daily content generated", extra={"child_id": child["id"], "date": day})
    return {"source": "generated", "content": parsed}
