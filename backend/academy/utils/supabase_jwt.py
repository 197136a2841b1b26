from __future__ import annotations

import time
from typing import Any

import httpx
from jose import JWTError, jwk, jwt

_JWKS_CACHE_SECONDS = 300
_JWKS_CACHE: dict[str, Any] = {
    "url": None,
    "expires_at": 0.0,
    "keys": {},
}


class SupabaseJwtError(Exception):
    pass


def _fetch_jwks(url: str) -> dict[str, Any]:
    try:
        resp = httpx.get(url, timeout=5)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise SupabaseJwtError(f"Failed to fetch JWKS: {exc}") from exc
    if not isinstance(data, dict) or "keys" not in data:
        raise SupabaseJwtError("JWKS response missing keys")
    return data


def _keys_by_kid(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {
        entry["kid"]: entry
        for entry in data.get("keys", [])
        if isinstance(entry, dict) and entry.get("kid")
    }


def _signing_keys(url: str, *, force_refresh: bool = False) -> dict[str, dict[str, Any]]:
    now = time.monotonic()
    if (
        not force_refresh
        and _JWKS_CACHE["url"] == url
        and now < _JWKS_CACHE["expires_at"]
    ):
        return _JWKS_CACHE["keys"]

    keys = _keys_by_kid(_fetch_jwks(url))
    _JWKS_CACHE.update(url=url, keys=keys, expires_at=now + _JWKS_CACHE_SECONDS)
    return keys


def verify_supabase_access_token(
    token: str,
    *,
    jwks_url: str,
    issuer: str | None = None,
) -> dict[str, Any]:
    """Verify an asymmetric Supabase access token against the project's JWKS."""

    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise SupabaseJwtError("Invalid token header") from exc

    alg = header.get("alg")
    if alg not in ("RS256", "ES256"):
        raise SupabaseJwtError(f"Unsupported JWT alg: {alg}")
    kid = header.get("kid")
    if not kid:
        raise SupabaseJwtError("JWT header missing kid")

    key_data = _signing_keys(jwks_url).get(kid)
    if not key_data:
        # Keys rotate; refetch once before giving up.
        key_data = _signing_keys(jwks_url, force_refresh=True).get(kid)
    if not key_data:
        raise SupabaseJwtError("JWT kid not found in JWKS")

    key = jwk.construct(key_data, alg)
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[alg],
            issuer=issuer,
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise SupabaseJwtError("JWT verification failed") from exc
