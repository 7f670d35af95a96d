from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

import httpx
import jwt
from fastapi import Header, HTTPException
from jwt import PyJWKClient

from .errors import UpstreamError


@lru_cache
def _supabase_config() -> tuple[str, str]:
    url = os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL")
    anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY")
    if not url or not anon_key:
        raise RuntimeError("Missing SUPABASE_URL/SUPABASE_ANON_KEY for API access.")
    return url.rstrip("/"), anon_key


@lru_cache
def _service_role_key() -> str:
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not key:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY for admin access.")
    return key


@lru_cache
def _jwks_url() -> str:
    base_url, _ = _supabase_config()
    return os.getenv("SUPABASE_JWKS_URL") or f"{base_url}/auth/v1/keys"


@lru_cache
def _jwks_client() -> PyJWKClient:
    return PyJWKClient(_jwks_url())


def _parse_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Unauthorized")
    return parts[1]


def parse_uuid(value: Optional[str], label: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing {label}.")
    try:
        return str(UUID(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {label}.") from exc


def resolve_optional_uuid(value: Optional[str], label: str) -> Optional[str]:
    if not value:
        return None
    return parse_uuid(value, label)


def in_filter(values: List[str]) -> str:
    """PostgREST ``in`` filter for a list of ids."""
    return "in.(" + ",".join(str(value) for value in values) + ")"


def _describe_response(resp: httpx.Response) -> str:
    try:
        return resp.text or "<empty response>"
    except Exception:
        return "<unable to read response>"


def _raise_supabase_error(
    resp: httpx.Response,
    action: str,
    *,
    object_label: Optional[str] = None,
) -> None:
    detail = _describe_response(resp)
    label = f" ({object_label})" if object_label else ""
    raise UpstreamError(
        f"Supabase {action} failed{label}: status={resp.status_code}, body={detail}",
        provider="supabase",
        status_code=resp.status_code,
    )


async def _verify_access_token(token: str) -> Dict[str, Any]:
    audience = os.getenv("SUPABASE_JWT_AUD", "authenticated")
    options = {"verify_aud": bool(audience)}
    try:
        signing_key = _jwks_client().get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256", "ES256"],
            audience=audience if audience else None,
            options=options,
        )
    except (jwt.PyJWTError, httpx.HTTPError):
        pass

    secret = os.getenv("SUPABASE_JWT_SECRET")
    if secret:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=["HS256"],
                audience=audience if audience else None,
                options=options,
            )
        except jwt.PyJWTError as exc:
            raise HTTPException(status_code=401, detail="Unauthorized") from exc

    base_url, anon_key = _supabase_config()
    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.get(
            f"{base_url}/auth/v1/user",
            headers={
                "Authorization": f"Bearer {token}",
                "apikey": anon_key,
            },
        )
    if resp.status_code >= 400:
        raise HTTPException(status_code=401, detail="Unauthorized")
    data = resp.json() if resp.content else {}
    user_id = data.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"sub": user_id, "email": data.get("email"), "user_metadata": data.get("user_metadata") or {}}


Payload = Union[Dict[str, Any], List[Dict[str, Any]]]


@dataclass
class SupabaseClient:
    base_url: str
    anon_key: str
    access_token: str

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Payload] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                return await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(headers),
                )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Supabase {method} {table} failed: {exc}", provider="supabase") from exc

    async def select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        resp = await self.request("GET", table, params=params)
        if resp.status_code >= 400:
            _raise_supabase_error(resp, "select", object_label=f"table={table}")
        return resp.json()

    async def select_one(self, table: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, {**params, "limit": "1"})
        return rows[0] if rows else None

    async def insert(
        self,
        table: str,
        payload: Payload,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        resp = await self.request(
            "POST",
            table,
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if resp.status_code >= 400:
            _raise_supabase_error(resp, "insert", object_label=f"table={table}")
        return resp.json() if resp.content else []

    async def upsert(
        self,
        table: str,
        payload: Payload,
        *,
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> List[Dict[str, Any]]:
        resolution = "ignore-duplicates" if ignore_duplicates else "merge-duplicates"
        resp = await self.request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=payload,
            headers={
                "Prefer": f"resolution={resolution},return=representation",
            },
        )
        if resp.status_code >= 400:
            _raise_supabase_error(resp, "upsert", object_label=f"table={table}")
        return resp.json() if resp.content else []

    async def update(
        self,
        table: str,
        payload: Dict[str, Any],
        params: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        resp = await self.request(
            "PATCH",
            table,
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if resp.status_code >= 400:
            _raise_supabase_error(resp, "update", object_label=f"table={table}")
        return resp.json() if resp.content else []

    async def delete(self, table: str, params: Dict[str, Any]) -> None:
        resp = await self.request("DELETE", table, params=params)
        if resp.status_code >= 400:
            _raise_supabase_error(resp, "delete", object_label=f"table={table}")


@lru_cache
def get_admin_client() -> SupabaseClient:
    base_url, _ = _supabase_config()
    service_role = _service_role_key()
    return SupabaseClient(base_url=base_url, anon_key=service_role, access_token=service_role)


def get_db() -> SupabaseClient:
    """Service-role client used for all table access after the caller is authenticated."""
    return get_admin_client()


@dataclass
class UserContext:
    user_id: str
    user_email: Optional[str]
    access_token: str
    db: SupabaseClient
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> Optional[str]:
        return self.user_metadata.get("name") or self.user_metadata.get("full_name") or self.user_email


async def get_user_context(
    authorization: Optional[str] = Header(None),
) -> UserContext:
    token = _parse_bearer_token(authorization)
    payload = await _verify_access_token(token)
    try:
        user_id = str(UUID(str(payload.get("sub"))))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc
    user_email = payload.get("email") if isinstance(payload, dict) else None
    metadata = payload.get("user_metadata") if isinstance(payload, dict) else None

    return UserContext(
        user_id=user_id,
        user_email=user_email,
        access_token=token,
        db=get_admin_client(),
        user_metadata=metadata if isinstance(metadata, dict) else {},
    )
