"""Reading-state aware article sections for the explore feeds."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from .child_age import EPOCH, parse_timestamp
from .schemas import ARTICLE_TYPES, SUPPORTED_LANGUAGES, SectionShortage
from .titles import canonical_title_key, clean_title, dedupe_by_title_key

SECTION_MINIMUM = 3
KEEP_READING_LIMIT = 2
KEEP_READING_MIN_AGE = timedelta(minutes=5)
RECENTLY_READ_LIMIT = 10

Row = Dict[str, Any]


def normalize_language(value: Optional[str], fallback: str = "es") -> str:
    return value if value in SUPPORTED_LANGUAGES else fallback


def language_priority(language: str) -> List[str]:
    return ["es", "en"] if language == "es" else ["en", "es"]


async def fetch_with_language_fallback(
    fetch: Callable[[str], Awaitable[List[Row]]],
    language: str,
) -> Tuple[List[Row], str]:
    """Rows in the first language of the priority chain that has any; the other language is never blended in."""

    for candidate in language_priority(language):
        rows = await fetch(candidate)
        if rows:
            return rows, candidate
    return [], language


def interleave_by_type(items: Sequence[Row]) -> List[Row]:
    queues = {kind: [item for item in items if item.get("type") == kind] for kind in ("article", "guide", "research")}
    result: List[Row] = []
    while any(queues.values()):
        for kind in ("article", "guide", "research"):
            if queues[kind]:
                result.append(queues[kind].pop(0))
    result.extend(item for item in items if item.get("type") not in ARTICLE_TYPES)
    return result


def pick_unread_section(
    pool: Sequence[Row],
    used_ids: Set[Any],
    minimum: int = SECTION_MINIMUM,
    predicate: Optional[Callable[[Row], bool]] = None,
    *,
    limit: Optional[int] = None,
) -> Tuple[List[Row], SectionShortage]:
    """Take up to ``limit`` (default ``minimum``) unused rows and report the section's shortage."""

    eligible = [item for item in pool if predicate is None or predicate(item)]
    unused = [item for item in eligible if item.get("id") not in used_ids]
    picked = unused[: minimum if limit is None else limit]
    used_ids.update(item.get("id") for item in picked)
    return picked, SectionShortage(
        required=minimum,
        available_unread=len(unused),
        returned=len(picked),
        shortage=max(0, minimum - len(unused)),
    )


def _is_completed(read: Optional[Row]) -> bool:
    return bool(read and read.get("read_completed"))


def build_unread_pool(articles: Sequence[Row], reads: Mapping[Any, Row]) -> List[Row]:
    """Unread articles, minus any whose canonical title the user already finished, one per title."""

    read_keys = {
        canonical_title_key(article.get("title") or "")
        for article in articles
        if _is_completed(reads.get(article.get("id")))
    }
    unread = [
        article
        for article in articles
        if not _is_completed(reads.get(article.get("id")))
        and canonical_title_key(article.get("title") or "") not in read_keys
    ]
    return dedupe_by_title_key(unread, lambda article: article.get("title") or "")


def keep_reading(
    articles: Sequence[Row],
    reads: Mapping[Any, Row],
    now: Optional[datetime] = None,
    *,
    min_age: timedelta = KEEP_READING_MIN_AGE,
    limit: int = KEEP_READING_LIMIT,
) -> List[Row]:
    current = now or datetime.now(timezone.utc)
    started = []
    for article in articles:
        read = reads.get(article.get("id"))
        if not read or _is_completed(read) or not read.get("opened_at"):
            continue
        opened_at = parse_timestamp(read.get("opened_at"))
        if opened_at == EPOCH or current - opened_at < min_age:
            continue
        started.append((opened_at, article))
    started.sort(key=lambda pair: pair[0], reverse=True)
    return [article for _, article in started[:limit]]


def recently_read(
    articles: Sequence[Row],
    reads: Mapping[Any, Row],
    limit: int = RECENTLY_READ_LIMIT,
) -> List[Row]:
    finished = [article for article in articles if _is_completed(reads.get(article.get("id")))]
    finished.sort(key=lambda article: parse_timestamp(reads[article.get("id")].get("completed_at")), reverse=True)
    return finished[:limit]


def reading_streak(completions: Iterable[Any], today: Optional[date] = None) -> int:
    """Consecutive UTC days with a completion, counted back from today."""

    days = {
        parse_timestamp(value).astimezone(timezone.utc).date()
        for value in completions
        if value and parse_timestamp(value) != EPOCH
    }
    current = today or datetime.now(timezone.utc).date()
    streak = 0
    while current in days:
        streak += 1
        current -= timedelta(days=1)
    return streak


def enrich_article(
    article: Row,
    reads: Mapping[Any, Row],
    bookmarked_ids: Optional[Set[Any]] = None,
    *,
    include_body: bool = False,
) -> Row:
    read = reads.get(article.get("id")) or {}
    enriched = {key: value for key, value in article.items() if include_body or key != "body"}
    enriched.update(
        {
            "title": clean_title(article.get("title") or ""),
            "is_read": _is_completed(read),
            "opened_at": read.get("opened_at"),
            "completed_at": read.get("completed_at"),
            "is_bookmarked": article.get("id") in (bookmarked_ids or set()),
        }
    )
    return enriched
