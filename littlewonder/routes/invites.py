from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..child_access import resolve_accessible_child
from ..child_age import parse_timestamp
from ..config import AppConfig, get_config
from ..schemas import InviteCreatePayload
from ..supabase import SupabaseClient, UserContext, get_db, get_user_context, resolve_optional_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invites", tags=["invites"])

INVITE_COLUMNS = "token,child_id,created_by_user_id,expires_at,claimed_by_user_id,claimed_at,revoked_at"


def invite_url(config: AppConfig, token: str) -> str:
    return f"{config.invite_base_url.rstrip('/')}/{token}"


def _is_expired(invite: Dict[str, Any], now: datetime) -> bool:
    return parse_timestamp(invite.get("expires_at")) <= now


async def _get_invite(db: SupabaseClient, token: str) -> Optional[Dict[str, Any]]:
    return await db.select_one("caregiver_invites", {"select": INVITE_COLUMNS, "token": f"eq.{token}"})


@router.post("/create")
async def create_invite(
    payload: Optional[InviteCreatePayload] = None,
    user: UserContext = Depends(get_user_context),
    config: AppConfig = Depends(get_config),
) -> Dict[str, Any]:
    db = user.db
    requested = resolve_optional_uuid(payload.child_id if payload else None, "child_id")
    child = await resolve_accessible_child(db, user.user_id, requested)
    if not child or not child.get("id"):
        if requested:
            raise HTTPException(status_code=404, detail="Child not found.")
        raise HTTPException(status_code=400, detail="No accessible child found for this user.")

    now = datetime.now(timezone.utc)
    existing = await db.select_one(
        "caregiver_invites",
        {
            "select": "token,expires_at",
            "child_id": f"eq.{child['id']}",
            "created_by_user_id": f"eq.{user.user_id}",
            "revoked_at": "is.null",
            "claimed_at": "is.null",
            "expires_at": f"gt.{now.isoformat()}",
            "order": "created_at.desc",
        },
    )
    if existing and existing.get("token"):
        return {
            "token": existing["token"],
            "url": invite_url(config, existing["token"]),
            "expires_at": existing["expires_at"],
        }

    token = uuid4().hex
    expires_at = (now + timedelta(hours=config.invite_ttl_hours)).isoformat()
    created = await db.insert(
        "caregiver_invites",
        {
            "token": token,
            "child_id": child["id"],
            "created_by_user_id": user.user_id,
            "expires_at": expires_at,
        },
    )
    row = created[0] if created else {"token": token, "expires_at": expires_at}
    logger.info("caregiver invite created", extra={"child_id": child["id"], "user_id": user.user_id})
    return {"token": row["token"], "url": invite_url(config, row["token"]), "expires_at": row["expires_at"]}


@router.get("/{token}")
async def fetch_invite(token: str, db: SupabaseClient = Depends(get_db)) -> Any:
    invite = await _get_invite(db, token)
    if not invite:
        return JSONResponse(status_code=404, content={"valid": False, "reason": "not_found"})

    now = datetime.now(timezone.utc)
    expired = _is_expired(invite, now)
    revoked = bool(invite.get("revoked_at"))
    child = await db.select_one("children", {"select": "id,name", "id": f"eq.{invite['child_id']}"})
    return {
        "valid": not expired and not revoked,
        "expired": expired,
        "revoked": revoked,
        "claimed": bool(invite.get("claimed_at")),
        "child": {"id": child["id"], "name": child.get("name")} if child else None,
        "expires_at": invite.get("expires_at"),
    }


@router.post("/{token}/claim")
async def claim_invite(token: str, user: UserContext = Depends(get_user_context)) -> Dict[str, Any]:
    db = user.db
    invite = await _get_invite(db, token)
    if not invite:
        raise HTTPException(status_code=404, detail="Invite not found.")

    now = datetime.now(timezone.utc)
    if invite.get("revoked_at"):
        raise HTTPException(status_code=410, detail="Invite revoked.")
    if _is_expired(invite, now):
        raise HTTPException(status_code=410, detail="Invite expired.")
    claimed_by = invite.get("claimed_by_user_id")
    if claimed_by and claimed_by != user.user_id:
        raise HTTPException(status_code=409, detail="Invite already claimed.")

    if invite.get("created_by_user_id") != user.user_id:
        await db.upsert(
            "child_caregivers",
            {"child_id": invite["child_id"], "user_id": user.user_id, "role": "caregiver"},
            on_conflict="child_id,user_id",
            ignore_duplicates=True,
        )

    if not claimed_by:
        await db.update(
            "caregiver_invites",
            {"claimed_by_user_id": user.user_id, "claimed_at": now.isoformat()},
            {"token": f"eq.{token}", "claimed_by_user_id": "is.null"},
        )
        logger.info("caregiver invite claimed", extra={"child_id": invite["child_id"], "user_id": user.user_id})

    return {"ok": True, "child_id": invite["child_id"]}
