from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query

from ..child_access import resolve_accessible_child
from ..play_schemas import normalize_schema_list
from ..supabase import UserContext, get_user_context, resolve_optional_uuid

router = APIRouter(prefix="/api/profile", tags=["profile"])


def schema_stats(timeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Number of distinct observations per canonical schema, most frequent first."""

    wonders_by_schema: Dict[str, Set[Any]] = {}
    for entry in timeline:
        for schema in entry["schemas"]:
            wonders_by_schema.setdefault(schema, set()).add(entry["id"])
    stats = [{"name": name, "count": len(ids)} for name, ids in wonders_by_schema.items()]
    stats.sort(key=lambda item: (-item["count"], item["name"]))
    return stats


@router.get("/wonders")
async def wonders_timeline(
    child_id: Optional[str] = Query(None),
    user: UserContext = Depends(get_user_context),
) -> Dict[str, Any]:
    requested = resolve_optional_uuid(child_id, "child_id")
    child = await resolve_accessible_child(user.db, user.user_id, requested)
    if requested and not child:
        raise HTTPException(status_code=404, detail="Child not found.")
    if not child:
        return {"timeline": [], "schema_stats": []}

    wonders = await user.db.select(
        "wonders",
        {
            "select": "id,title,observation_text,schemas_detected,created_at",
            "child_id": f"eq.{child['id']}",
            "order": "created_at.desc",
        },
    )
    timeline = [
        {
            "id": wonder["id"],
            "created_at": wonder.get("created_at"),
            "title": wonder.get("title"),
            "observation": wonder.get("observation_text"),
            "schemas": normalize_schema_list(wonder.get("schemas_detected")),
        }
        for wonder in wonders
    ]
    return {"timeline": timeline, "schema_stats": schema_stats(timeline)}
