from __future__ import annotations

from typing import Any, Dict, Optional

from .explore import normalize_language
from .supabase import SupabaseClient

CHILD_COLUMNS = "id,user_id,name,birthdate"


async def get_child_by_id(db: SupabaseClient, child_id: str) -> Optional[Dict[str, Any]]:
    return await db.select_one("children", {"select": CHILD_COLUMNS, "id": f"eq.{child_id}"})


async def _caregiver_link(db: SupabaseClient, user_id: str, child_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    params = {"select": "child_id", "user_id": f"eq.{user_id}", "order": "created_at.asc"}
    if child_id:
        params["child_id"] = f"eq.{child_id}"
    return await db.select_one("child_caregivers", params)


async def user_can_access_child(db: SupabaseClient, user_id: str, child_id: str) -> bool:
    child = await get_child_by_id(db, child_id)
    if not child:
        return False
    if child.get("user_id") == user_id:
        return True
    return await _caregiver_link(db, user_id, child_id) is not None


async def resolve_owned_child(db: SupabaseClient, user_id: str) -> Optional[Dict[str, Any]]:
    return await db.select_one(
        "children",
        {"select": CHILD_COLUMNS, "user_id": f"eq.{user_id}", "order": "created_at.asc"},
    )


async def resolve_accessible_child(
    db: SupabaseClient,
    user_id: str,
    requested_child_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Requested child when the user owns it or holds a caregiver link; otherwise
    the user's earliest owned child, then the earliest caregiver-linked child."""

    if requested_child_id:
        child = await get_child_by_id(db, requested_child_id)
        if not child:
            return None
        if child.get("user_id") == user_id:
            return child
        link = await _caregiver_link(db, user_id, requested_child_id)
        return child if link else None

    owned = await resolve_owned_child(db, user_id)
    if owned:
        return owned
    link = await _caregiver_link(db, user_id)
    if not link or not link.get("child_id"):
        return None
    return await get_child_by_id(db, link["child_id"])


async def get_user_language(db: SupabaseClient, user_id: str, fallback: str = "es") -> str:
    row = await db.select_one("users", {"select": "language", "id": f"eq.{user_id}"})
    return normalize_language((row or {}).get("language"), fallback)
