from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..child_access import get_user_language, resolve_accessible_child
from ..child_age import age_in_months
from ..explore import normalize_language
from ..ranking import (
    REQUIRED_ACTIVITIES,
    activity_shortage,
    partition_activities,
    rank_activities,
    schema_counts,
    top_schemas,
)
from ..schemas import ActivityContent, ActivityShortage, CompletePayload
from ..supabase import SupabaseClient, UserContext, get_user_context, in_filter, parse_uuid, resolve_optional_uuid
from ..titles import clean_title, dedupe_by_title_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/activities", tags=["activities"])

ACTIVITY_COLUMNS = (
    "id,emoji,title,subtitle,schema_target,domain,materials,duration_minutes,steps,"
    "science_note,age_min_months,age_max_months,language,is_featured,created_at"
)
RECENT_WONDERS_LIMIT = 50
MAX_NOTE_CHARS = 1000


def _empty_payload(child_schemas: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "featured": None,
        "activities": [],
        "saved": [],
        "completed": [],
        "child_schemas": child_schemas or [],
        "stats": {"total": 0, "saved": 0, "completed": 0},
        "shortages": ActivityShortage(
            required=REQUIRED_ACTIVITIES,
            available_uncompleted=0,
            returned=0,
            shortage=REQUIRED_ACTIVITIES,
        ).model_dump(),
    }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _require_activity(db: SupabaseClient, activity_id: str) -> Dict[str, Any]:
    activity = await db.select_one("activities", {"select": "id", "id": f"eq.{activity_id}"})
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found.")
    return activity


@router.get("")
async def list_activities(
    child_id: Optional[str] = Query(None, description="Child to personalize for; defaults to the first accessible child"),
    language: Optional[str] = Query(None, description="es | en; defaults to the user's language"),
    user: UserContext = Depends(get_user_context),
) -> Dict[str, Any]:
    db = user.db
    requested_child = resolve_optional_uuid(child_id, "child_id")
    child = await resolve_accessible_child(db, user.user_id, requested_child)
    if requested_child and not child:
        raise HTTPException(status_code=404, detail="Child not found.")
    if not child or not child.get("birthdate"):
        return _empty_payload()

    age_months = age_in_months(child["birthdate"])
    selected_language = normalize_language(language, await get_user_language(db, user.user_id))

    wonders = await db.select(
        "wonders",
        {
            "select": "schemas_detected",
            "child_id": f"eq.{child['id']}",
            "order": "created_at.desc",
            "limit": str(RECENT_WONDERS_LIMIT),
        },
    )
    counts = schema_counts(row.get("schemas_detected") for row in wonders)
    top = top_schemas(counts)

    rows = await db.select(
        "activities",
        {
            "select": ACTIVITY_COLUMNS,
            "language": f"eq.{selected_language}",
            "age_min_months": f"lte.{age_months}",
            "age_max_months": f"gte.{age_months}",
            "order": "created_at.desc",
        },
    )
    items = dedupe_by_title_key(
        [ActivityContent.model_validate(row) for row in rows],
        lambda item: item.title,
    )
    if not items:
        payload = _empty_payload(top)
        payload["language"] = selected_language
        return payload

    ids = [item.id for item in items]
    saves = await db.select(
        "activity_saves",
        {"select": "activity_id", "user_id": f"eq.{user.user_id}", "activity_id": in_filter(ids)},
    )
    completions = await db.select(
        "activity_completions",
        {
            "select": "activity_id,rating,note,completed_at",
            "user_id": f"eq.{user.user_id}",
            "activity_id": in_filter(ids),
        },
    )
    saved_ids = {row["activity_id"] for row in saves}
    completed = {row["activity_id"]: row for row in completions}

    annotated = []
    for item in items:
        completion = completed.get(item.id)
        row = item.model_dump(mode="json")
        row.update(
            {
                "title": clean_title(item.title),
                "is_saved": item.id in saved_ids,
                "is_completed": completion is not None,
                "rating": completion.get("rating") if completion else None,
                "completed_at": completion.get("completed_at") if completion else None,
            }
        )
        annotated.append(row)

    ranked = rank_activities(annotated, counts, top)
    buckets = partition_activities(ranked)
    shortage = activity_shortage(ranked, buckets)
    if shortage.shortage:
        logger.info(
            "activity pool below minimum",
            extra={"age_months": age_months, "language": selected_language, **shortage.model_dump()},
        )

    return {
        **buckets,
        "child_schemas": top,
        "language": selected_language,
        "stats": {
            "total": len(ranked),
            "saved": len(buckets["saved"]),
            "completed": len(buckets["completed"]),
        },
        "shortages": shortage.model_dump(),
    }


@router.post("/{activity_id}/save")
async def save_activity(activity_id: str, user: UserContext = Depends(get_user_context)) -> Dict[str, Any]:
    activity_id = parse_uuid(activity_id, "activity_id")
    db = user.db
    await _require_activity(db, activity_id)
    await db.upsert(
        "users",
        {"id": user.user_id, "name": user.display_name},
        on_conflict="id",
        ignore_duplicates=True,
    )
    await db.upsert(
        "activity_saves",
        {"user_id": user.user_id, "activity_id": activity_id, "saved_at": _now_iso()},
        on_conflict="user_id,activity_id",
        ignore_duplicates=True,
    )
    return {"ok": True, "saved": True}


@router.delete("/{activity_id}/save")
async def unsave_activity(activity_id: str, user: UserContext = Depends(get_user_context)) -> Dict[str, Any]:
    activity_id = parse_uuid(activity_id, "activity_id")
    await user.db.delete(
        "activity_saves",
        {"user_id": f"eq.{user.user_id}", "activity_id": f"eq.{activity_id}"},
    )
    return {"ok": True, "saved": False}


@router.post("/{activity_id}/complete")
async def complete_activity(
    activity_id: str,
    payload: Optional[CompletePayload] = None,
    user: UserContext = Depends(get_user_context),
) -> Dict[str, Any]:
    activity_id = parse_uuid(activity_id, "activity_id")
    payload = payload or CompletePayload()
    if payload.rating is not None and not 1 <= payload.rating <= 5:
        raise HTTPException(status_code=400, detail="rating must be between 1 and 5.")
    note = (payload.note or "").strip() or None
    if note and len(note) > MAX_NOTE_CHARS:
        raise HTTPException(status_code=400, detail=f"note must be at most {MAX_NOTE_CHARS} characters.")

    db = user.db
    await _require_activity(db, activity_id)
    rows = await db.upsert(
        "activity_completions",
        {
            "user_id": user.user_id,
            "activity_id": activity_id,
            "rating": payload.rating,
            "note": note,
            "completed_at": _now_iso(),
        },
        on_conflict="user_id,activity_id",
    )
    return {"ok": True, "completion": rows[0] if rows else None}
