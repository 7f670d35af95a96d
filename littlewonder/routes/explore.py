from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..child_access import get_user_language, resolve_accessible_child
from ..child_age import age_in_months
from ..explore import (
    SECTION_MINIMUM,
    build_unread_pool,
    enrich_article,
    fetch_with_language_fallback,
    interleave_by_type,
    keep_reading,
    normalize_language,
    pick_unread_section,
    reading_streak,
    recently_read,
)
from ..schemas import ArticleContent, BrainCardContent, ReadPatchPayload, SectionShortage, to_card
from ..supabase import SupabaseClient, UserContext, get_user_context, in_filter, parse_uuid, resolve_optional_uuid

router = APIRouter(prefix="/api/explore", tags=["explore"])

ARTICLE_LIST_COLUMNS = (
    "id,title,emoji,type,summary,age_min_months,age_max_months,domain,language,read_time_minutes,created_at"
)
BRAIN_CARD_POOL_LIMIT = 120

TIP_WHY = {
    "es": (
        "Este tipo de micro-momentos fortalece funciones ejecutivas, lenguaje y vínculo emocional "
        "cuando se repiten con calma y presencia."
    ),
    "en": (
        "These small daily moments strengthen executive function, language, and emotional connection "
        "when repeated with calm presence."
    ),
}


def _empty_shortage(required: int = SECTION_MINIMUM) -> Dict[str, int]:
    return SectionShortage(required=required, available_unread=0, returned=0, shortage=required).model_dump()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _resolve_child_age(user: UserContext, child_id: Optional[str]) -> Optional[int]:
    requested = resolve_optional_uuid(child_id, "child_id")
    child = await resolve_accessible_child(user.db, user.user_id, requested)
    if requested and not child:
        raise HTTPException(status_code=404, detail="Child not found.")
    if not child or not child.get("birthdate"):
        return None
    return age_in_months(child["birthdate"])


async def _articles_for_age(
    db: SupabaseClient,
    language: str,
    age_months: int,
    *,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    params = {
        "select": ARTICLE_LIST_COLUMNS,
        "language": f"eq.{language}",
        "age_min_months": f"lte.{age_months}",
        "age_max_months": f"gte.{age_months}",
        "order": "created_at.desc",
    }
    if limit:
        params["limit"] = str(limit)
    return await db.select("explore_articles", params)


async def _legacy_brain_cards(db: SupabaseClient, language: str, age_months: int) -> List[Dict[str, Any]]:
    return await db.select(
        "explore_brain_cards",
        {
            "select": "*",
            "language": f"eq.{language}",
            "age_range_start": f"lte.{age_months}",
            "age_range_end": f"gte.{age_months}",
        },
    )


async def _user_reads(db: SupabaseClient, user_id: str) -> Dict[str, Dict[str, Any]]:
    rows = await db.select(
        "article_reads",
        {
            "select": "article_id,opened_at,read_completed,completed_at,read_time_seconds",
            "user_id": f"eq.{user_id}",
        },
    )
    return {row["article_id"]: row for row in rows}


async def _require_article(db: SupabaseClient, article_id: str) -> None:
    if not await db.select_one("explore_articles", {"select": "id", "id": f"eq.{article_id}"}):
        raise HTTPException(status_code=404, detail="Article not found.")


@router.get("")
async def explore_feed(
    child_id: Optional[str] = Query(None),
    language: Optional[str] = Query(None),
    user: UserContext = Depends(get_user_context),
) -> Dict[str, Any]:
    db = user.db
    age_months = await _resolve_child_age(user, child_id)
    if age_months is None:
        return {
            "brain_cards": [],
            "brain_cards_source": "none",
            "daily_tip": None,
            "shortages": {"brain_cards": _empty_shortage()},
        }

    selected = normalize_language(language, await get_user_language(db, user.user_id))
    pool, used_language = await fetch_with_language_fallback(
        lambda lang: _articles_for_age(db, lang, age_months, limit=BRAIN_CARD_POOL_LIMIT),
        selected,
    )

    if pool:
        reads = await _user_reads(db, user.user_id)
        unread = build_unread_pool(pool, reads)
        picked, shortage = pick_unread_section(unread, set(), predicate=lambda row: row.get("type") != "research")
        cards = [to_card(ArticleContent.model_validate(row)) for row in picked]
        source = "explore_articles"
    else:
        legacy, used_language = await fetch_with_language_fallback(
            lambda lang: _legacy_brain_cards(db, lang, age_months),
            selected,
        )
        picked, shortage = pick_unread_section(legacy, set())
        cards = [to_card(BrainCardContent.model_validate(row)) for row in picked]
        source = "explore_brain_cards" if legacy else "none"

    tip = await db.select_one(
        "daily_tips",
        {
            "select": "id,body,language",
            "language": f"eq.{selected}",
            "age_min_months": f"lte.{age_months}",
            "age_max_months": f"gte.{age_months}",
            "order": "created_at.desc",
        },
    )
    daily_tip = None
    if tip:
        daily_tip = {
            "id": tip["id"],
            "language": tip.get("language"),
            "article": {"tip": tip.get("body"), "why": TIP_WHY.get(tip.get("language"), TIP_WHY["en"])},
        }

    return {
        "brain_cards": [{**card.model_dump(), "is_read": False} for card in cards],
        "brain_cards_source": source,
        "language": used_language,
        "daily_tip": daily_tip,
        "shortages": {"brain_cards": shortage.model_dump()},
    }


@router.get("/articles")
async def articles_feed(
    child_id: Optional[str] = Query(None),
    language: Optional[str] = Query(None),
    user: UserContext = Depends(get_user_context),
) -> Dict[str, Any]:
    db = user.db
    reads = await _user_reads(db, user.user_id)
    streak = reading_streak(row.get("completed_at") for row in reads.values() if row.get("read_completed"))

    age_months = await _resolve_child_age(user, child_id)
    if age_months is None:
        return {
            "new_for_you": [],
            "keep_reading": [],
            "deep_dives": [],
            "more_for_age": [],
            "recently_read": [],
            "streak": streak,
            "stats": {"total_available": 0, "total_read": 0},
            "shortages": {
                "new_for_you": _empty_shortage(),
                "deep_dives": _empty_shortage(),
                "more_for_age": _empty_shortage(),
            },
        }

    selected = normalize_language(language, await get_user_language(db, user.user_id))
    articles, used_language = await fetch_with_language_fallback(
        lambda lang: _articles_for_age(db, lang, age_months),
        selected,
    )
    bookmarks = await db.select("article_bookmarks", {"select": "article_id", "user_id": f"eq.{user.user_id}"})
    bookmarked_ids = {row["article_id"] for row in bookmarks}

    unread = build_unread_pool(articles, reads)
    used_ids: set = set()
    new_for_you, new_shortage = pick_unread_section(interleave_by_type(unread), used_ids)
    deep_dives, deep_shortage = pick_unread_section(
        unread,
        used_ids,
        predicate=lambda row: row.get("type") == "research",
        limit=len(unread),
    )
    more_for_age, more_shortage = pick_unread_section(unread, used_ids)

    def enrich(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [enrich_article(row, reads, bookmarked_ids) for row in rows]

    total_read = sum(1 for row in articles if (reads.get(row["id"]) or {}).get("read_completed"))
    return {
        "new_for_you": enrich(new_for_you),
        "keep_reading": enrich(keep_reading(articles, reads)),
        "deep_dives": enrich(deep_dives),
        "more_for_age": enrich(more_for_age),
        "recently_read": enrich(recently_read(articles, reads)),
        "language": used_language,
        "streak": streak,
        "stats": {"total_available": len(articles), "total_read": total_read},
        "shortages": {
            "new_for_you": new_shortage.model_dump(),
            "deep_dives": deep_shortage.model_dump(),
            "more_for_age": more_shortage.model_dump(),
        },
    }


@router.get("/articles/bookmarked")
async def bookmarked_articles(user: UserContext = Depends(get_user_context)) -> Dict[str, Any]:
    db = user.db
    bookmarks = await db.select(
        "article_bookmarks",
        {"select": "article_id,created_at", "user_id": f"eq.{user.user_id}", "order": "created_at.desc"},
    )
    if not bookmarks:
        return {"articles": [], "total": 0}

    ids = [row["article_id"] for row in bookmarks]
    rows = await db.select("explore_articles", {"select": ARTICLE_LIST_COLUMNS, "id": in_filter(ids)})
    by_id = {row["id"]: row for row in rows}
    reads = await _user_reads(db, user.user_id)

    articles = []
    for bookmark in bookmarks:
        row = by_id.get(bookmark["article_id"])
        if not row:
            continue
        enriched = enrich_article(row, reads, set(ids))
        enriched["bookmarked_at"] = bookmark.get("created_at")
        articles.append(enriched)
    return {"articles": articles, "total": len(articles)}


@router.post("/articles/{article_id}/bookmark")
async def toggle_bookmark(article_id: str, user: UserContext = Depends(get_user_context)) -> Dict[str, bool]:
    article_id = parse_uuid(article_id, "article_id")
    db = user.db
    filters = {"user_id": f"eq.{user.user_id}", "article_id": f"eq.{article_id}"}
    existing = await db.select_one("article_bookmarks", {"select": "article_id", **filters})
    if existing:
        await db.delete("article_bookmarks", filters)
        return {"bookmarked": False}

    await _require_article(db, article_id)
    await db.insert(
        "article_bookmarks",
        {"user_id": user.user_id, "article_id": article_id, "created_at": _now_iso()},
    )
    return {"bookmarked": True}


@router.post("/articles/{article_id}/read")
async def open_article(article_id: str, user: UserContext = Depends(get_user_context)) -> Dict[str, bool]:
    article_id = parse_uuid(article_id, "article_id")
    await _require_article(user.db, article_id)
    await user.db.upsert(
        "article_reads",
        {"user_id": user.user_id, "article_id": article_id, "opened_at": _now_iso()},
        on_conflict="user_id,article_id",
    )
    return {"ok": True}


@router.patch("/articles/{article_id}/read")
async def update_article_read(
    article_id: str,
    payload: Optional[ReadPatchPayload] = None,
    user: UserContext = Depends(get_user_context),
) -> Dict[str, bool]:
    article_id = parse_uuid(article_id, "article_id")
    payload = payload or ReadPatchPayload()
    await _require_article(user.db, article_id)

    now = _now_iso()
    patch: Dict[str, Any] = {
        "opened_at": now,
        "read_time_seconds": max(0, payload.read_time_seconds or 0),
    }
    if payload.read_completed:
        patch["read_completed"] = True
        patch["completed_at"] = now

    await user.db.upsert(
        "article_reads",
        {"user_id": user.user_id, "article_id": article_id, **patch},
        on_conflict="user_id,article_id",
    )
    return {"ok": True}
