from __future__ import annotations

import logging

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import get_config
from .daily_content import PromptLibrary
from .errors import UpstreamError, upstream_error_handler, validation_error_handler
from .metrics import unmapped_schema_counts, unmapped_schema_total
from .routes import activities as activity_routes
from .routes import daily_content as daily_content_routes
from .routes import explore as explore_routes
from .routes import invites as invite_routes
from .routes import profile as profile_routes
from .supabase import UserContext, get_user_context

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Little Wonder API",
    version="0.1.0",
    description="Age-banded play activities, explore articles and daily stage content for caregivers",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3001",
    ],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.add_exception_handler(UpstreamError, upstream_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

app.state.prompts = PromptLibrary.load(get_config().resolved_stage_prompt_path)

app.include_router(activity_routes.router)
app.include_router(explore_routes.router)
app.include_router(invite_routes.router)
app.include_router(daily_content_routes.router)
app.include_router(profile_routes.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/api/metrics/unmapped-schemas")
async def unmapped_schemas(user: UserContext = Depends(get_user_context)) -> dict:
    logger.info("unmapped schema metrics requested", extra={"user_id": user.user_id})
    return {"counts": unmapped_schema_counts(), "total": unmapped_schema_total()}
