"""Per (language, age band) inventory checks for activities and explore articles."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .age_bands import AgeBand
from .schemas import SUPPORTED_LANGUAGES
from .supabase import SupabaseClient

logger = logging.getLogger(__name__)

ACTIVITIES_TABLE = "activities"
ARTICLES_TABLE = "explore_articles"
ARTICLE_COLUMNS = (
    "id,emoji,title,type,domain,summary,body,read_time_minutes,"
    "age_min_months,age_max_months,language,created_at"
)


@dataclass
class ShortageRecord:
    language: str
    band: AgeBand
    total: int
    target: int
    missing_total: int
    unique_domains: int
    unique_schemas: int
    diversity_warning: bool

    @property
    def band_key(self) -> str:
        return self.band.key

    @property
    def is_short(self) -> bool:
        return self.missing_total > 0 or self.diversity_warning

    def as_row(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "band": self.band_key,
            "total": self.total,
            "missing_total": self.missing_total,
            "unique_domains": self.unique_domains,
            "unique_schemas": self.unique_schemas,
            "diversity_warning": self.diversity_warning,
        }


@dataclass
class ArticleShortageRecord:
    language: str
    band: AgeBand
    total: int
    research: int
    missing_total: int
    missing_research: int
    rows: List[Dict[str, Any]]

    @property
    def band_key(self) -> str:
        return self.band.key

    @property
    def is_short(self) -> bool:
        return self.missing_total > 0 or self.missing_research > 0

    def as_row(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "band": self.band_key,
            "total": self.total,
            "research": self.research,
            "missing_research": self.missing_research,
            "missing_total": self.missing_total,
        }


def _distinct(rows: Iterable[Dict[str, Any]], column: str) -> int:
    return len({row.get(column) for row in rows if row.get(column)})


def evaluate_activity_cell(
    rows: Sequence[Dict[str, Any]],
    language: str,
    band: AgeBand,
    *,
    threshold: int = 12,
    top_up: int = 3,
    min_domains: int = 4,
    min_schemas: int = 3,
) -> ShortageRecord:
    total = len(rows)
    target = threshold + top_up
    unique_domains = _distinct(rows, "domain")
    unique_schemas = _distinct(rows, "schema_target")
    return ShortageRecord(
        language=language,
        band=band,
        total=total,
        target=target,
        missing_total=max(0, target - total),
        unique_domains=unique_domains,
        unique_schemas=unique_schemas,
        diversity_warning=unique_domains < min_domains or unique_schemas < min_schemas,
    )


def evaluate_article_cell(
    rows: Sequence[Dict[str, Any]],
    language: str,
    band: AgeBand,
    *,
    min_total: int = 3,
    min_research: int = 3,
) -> ArticleShortageRecord:
    research = sum(1 for row in rows if row.get("type") == "research")
    return ArticleShortageRecord(
        language=language,
        band=band,
        total=len(rows),
        research=research,
        missing_total=max(0, min_total - len(rows)),
        missing_research=max(0, min_research - research),
        rows=list(rows),
    )


async def activity_band_rows(db: SupabaseClient, language: str, band: AgeBand) -> List[Dict[str, Any]]:
    return await db.select(
        ACTIVITIES_TABLE,
        {
            "select": "id,title,domain,schema_target,created_at",
            "language": f"eq.{language}",
            "age_min_months": f"eq.{band.age_min}",
            "age_max_months": f"eq.{band.age_max}",
        },
    )


async def article_band_rows(db: SupabaseClient, language: str, band: AgeBand) -> List[Dict[str, Any]]:
    """Articles whose own band covers ``band``, newest first."""

    return await db.select(
        ARTICLES_TABLE,
        {
            "select": ARTICLE_COLUMNS,
            "language": f"eq.{language}",
            "age_min_months": f"lte.{band.age_min}",
            "age_max_months": f"gte.{band.age_max}",
            "order": "created_at.desc",
        },
    )


def _cells(
    bands: Sequence[AgeBand],
    language: Optional[str],
    band_key: Optional[str],
) -> List[tuple]:
    return [
        (lang, band)
        for lang in SUPPORTED_LANGUAGES
        if not language or lang == language
        for band in bands
        if not band_key or band.key == band_key
    ]


async def scan_activity_shortages(
    db: SupabaseClient,
    bands: Sequence[AgeBand],
    *,
    language: Optional[str] = None,
    band_key: Optional[str] = None,
    threshold: int = 12,
    top_up: int = 3,
    min_domains: int = 4,
    min_schemas: int = 3,
) -> List[ShortageRecord]:
    short: List[ShortageRecord] = []
    for lang, band in _cells(bands, language, band_key):
        rows = await activity_band_rows(db, lang, band)
        record = evaluate_activity_cell(
            rows,
            lang,
            band,
            threshold=threshold,
            top_up=top_up,
            min_domains=min_domains,
            min_schemas=min_schemas,
        )
        if record.is_short:
            short.append(record)
    logger.info("activity shortage scan", extra={"cells": len(_cells(bands, language, band_key)), "short": len(short)})
    return short


async def scan_article_shortages(
    db: SupabaseClient,
    bands: Sequence[AgeBand],
    *,
    language: Optional[str] = None,
    band_key: Optional[str] = None,
    min_total: int = 3,
    min_research: int = 3,
) -> List[ArticleShortageRecord]:
    short: List[ArticleShortageRecord] = []
    for lang, band in _cells(bands, language, band_key):
        rows = await article_band_rows(db, lang, band)
        record = evaluate_article_cell(rows, lang, band, min_total=min_total, min_research=min_research)
        if record.is_short:
            short.append(record)
    return short
