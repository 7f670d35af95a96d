"""OpenAI integration for generating activities, articles and daily stage content."""
from __future__ import annotations

import asyncio
import json
import logging
import re
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from openai import APIError, OpenAI

from .config import get_config, require_openai_key
from .errors import LLMResponseError, UpstreamError

logger = logging.getLogger(__name__)

# (system, prompt) -> raw completion text. Batch jobs and tests inject their own.
LLMCall = Callable[[str, str], str]

_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```\s*$")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@lru_cache
def get_client() -> OpenAI:
    return OpenAI(api_key=require_openai_key(get_config()))


def complete_text(
    system: str,
    prompt: str,
    *,
    max_tokens: int = 1200,
    temperature: float = 0.8,
    json_mode: bool = True,
    model: Optional[str] = None,
) -> str:
    """Run one chat completion and return the raw message text."""

    extra: Dict[str, Any] = {}
    if json_mode:
        extra["response_format"] = {"type": "json_object"}
    try:
        response = get_client().chat.completions.create(
            model=model or get_config().openai_model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            **extra,
        )
    except APIError as exc:
        raise UpstreamError(
            f"OpenAI request failed: {exc}",
            provider="openai",
            status_code=getattr(exc, "status_code", None),
        ) from exc

    try:
        content = response.choices[0].message.content or ""
    except (AttributeError, IndexError) as exc:
        raise UpstreamError("Unexpected OpenAI response format", provider="openai") from exc
    if not content.strip():
        raise UpstreamError("OpenAI returned an empty completion", provider="openai")
    return content


def json_completion(system: str, prompt: str) -> str:
    return complete_text(system, prompt, json_mode=True)


def article_completion(system: str, prompt: str) -> str:
    return complete_text(system, prompt, max_tokens=2600, temperature=0.7, json_mode=False)


async def call_llm(llm: LLMCall, system: str, prompt: str) -> str:
    return await asyncio.to_thread(llm, system, prompt)


def strip_code_fences(text: str) -> str:
    cleaned = _LEADING_FENCE.sub("", text.strip())
    return _TRAILING_FENCE.sub("", cleaned).strip()


def parse_json_payload(text: str) -> Dict[str, Any]:
    """Decode a JSON object from model output, tolerating Markdown fences only."""

    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"Model output is not valid JSON: {exc}", raw=text) from exc
    if not isinstance(payload, dict):
        raise LLMResponseError("Model output is not a JSON object", raw=text)
    return payload


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("discarding undecodable JSON block", extra={"length": len(match.group(0))})
        return None
    return payload if isinstance(payload, dict) else None
