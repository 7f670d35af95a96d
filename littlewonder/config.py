"""Application configuration utilities."""
from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field


PACKAGE_DIR = Path(__file__).resolve().parent

# Environment variables that override config.json, mapped to AppConfig fields.
ENV_OVERRIDES = {
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
    "INVITE_BASE_URL": "invite_base_url",
    "REFILL_CHUNK_SIZE": "refill_chunk_size",
    "DAILY_CONTENT_TIMEZONE": "daily_content_timezone",
    "STAGE_PROMPT_PATH": "stage_prompt_path",
}


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json and the environment."""

    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")

    # Activity shortage detection.
    activity_threshold: int = Field(default=12, ge=0)
    activity_top_up: int = Field(default=3, ge=0)
    min_unique_domains: int = Field(default=4, ge=0)
    min_unique_schemas: int = Field(default=3, ge=0)

    # Article shortage detection and clone backfill.
    article_min_total: int = Field(default=3, ge=0)
    article_min_research: int = Field(default=3, ge=0)
    max_clones_per_cell: int = Field(default=6, ge=0)
    refill_chunk_size: int = Field(default=3, ge=1)

    # Content generation loop.
    max_generation_attempts: int = Field(default=4, ge=1)
    duplicate_backoff_seconds: float = Field(default=0.7, ge=0)
    success_delay_seconds: float = Field(default=1.0, ge=0)
    error_delay_seconds: float = Field(default=4.0, ge=0)
    article_success_delay_seconds: float = Field(default=1.2, ge=0)
    article_error_delay_seconds: float = Field(default=5.0, ge=0)
    recent_titles_limit: int = Field(default=12, ge=0)

    # Caregiver invites.
    invite_ttl_hours: int = Field(default=24 * 14, ge=1)
    invite_base_url: str = Field(default="https://littlewonder.ai/join")

    # Daily stage content.
    daily_content_timezone: str = Field(default="America/Bogota")
    stage_prompt_path: str = Field(default=str(PACKAGE_DIR / "prompts" / "stage_content_prompt.md"))

    @property
    def resolved_stage_prompt_path(self) -> Path:
        """Return the absolute path for the stage prompt template."""
        path = Path(self.stage_prompt_path)
        if not path.is_absolute():
            path = PACKAGE_DIR.parent / path
        return path.resolve()


def _config_path() -> Path:
    override = os.getenv("LITTLEWONDER_CONFIG")
    if override:
        return Path(override)
    return PACKAGE_DIR.parent / "config.json"


def load_config() -> AppConfig:
    """Load configuration from config.json (when present) and environment overrides."""

    contents: Dict[str, Any] = {}
    config_file = _config_path()
    if config_file.exists():
        contents = json.loads(config_file.read_text())
    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            contents[field_name] = value
    return AppConfig(**contents)


@lru_cache
def get_config() -> AppConfig:
    return load_config()


def require_openai_key(config: AppConfig) -> str:
    if not config.openai_api_key:
        raise RuntimeError(
            "Missing OPENAI_API_KEY. Export it or copy config.example.json to config.json and set openai_api_key."
        )
    return config.openai_api_key
