"""
Error types for upstream provider failures and their HTTP mapping.
Routes let these propagate; main.py renders them as 500 with the provider message.
Request bodies and query params that fail validation render as 400.
"""
from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

STATUS_BAD_REQUEST = 400
STATUS_INTERNAL_ERROR = 500


class UpstreamError(RuntimeError):
    """A datastore or LLM provider call failed."""

    def __init__(self, message: str, *, provider: str = "upstream", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class LLMResponseError(UpstreamError):
    """The LLM answered, but not with decodable JSON."""

    def __init__(self, message: str, *, raw: str = ""):
        super().__init__(message, provider="openai")
        self.raw = raw


def upstream_error_to_http(exc: UpstreamError) -> HTTPException:
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))


async def upstream_error_handler(_: Request, exc: UpstreamError) -> JSONResponse:
    http_exc = upstream_error_to_http(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def validation_error_detail(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = error.get("loc") or ()
        field = ".".join(str(part) for part in location[1:]) or ".".join(str(part) for part in location)
        messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    return "; ".join(messages) or "Invalid request."


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=STATUS_BAD_REQUEST, content={"detail": validation_error_detail(exc)})
