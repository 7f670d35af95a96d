from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from ..child_access import resolve_accessible_child
from ..config import AppConfig, get_config
from ..daily_content import PromptLibrary, generate_daily_content, language_from_header
from ..openai_client import json_completion
from ..schemas import DailyContentPayload
from ..supabase import UserContext, get_user_context, resolve_optional_uuid

router = APIRouter(prefix="/api", tags=["daily-content"])


def get_prompts(request: Request) -> PromptLibrary:
    return request.app.state.prompts


@router.post("/daily-content")
async def daily_content(
    payload: Optional[DailyContentPayload] = None,
    accept_language: Optional[str] = Header(None),
    user: UserContext = Depends(get_user_context),
    prompts: PromptLibrary = Depends(get_prompts),
    config: AppConfig = Depends(get_config),
) -> Dict[str, Any]:
    requested = resolve_optional_uuid(payload.child_id if payload else None, "child_id")
    child = await resolve_accessible_child(user.db, user.user_id, requested)
    if requested and not child:
        raise HTTPException(status_code=404, detail="Child not found.")
    if not child:
        raise HTTPException(status_code=400, detail="Complete onboarding before requesting daily content.")

    return await generate_daily_content(
        user.db,
        child,
        prompts,
        language=language_from_header(accept_language),
        llm=json_completion,
        tz_name=config.daily_content_timezone,
    )
