"""Thin client for Meta custom-audience endpoints on the Graph API."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Iterator
from typing import Any

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

UPLOAD_BATCH_SIZE = 10_000


class MetaAudienceError(RuntimeError):
    """Raised when Meta credentials are missing or the Graph API rejects a call."""


def hash_identifier(value: str) -> str:
    return hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()


def _batched(values: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class MetaAudienceClient:
    def __init__(
        self,
        *,
        access_token: str | None = None,
        ad_account_id: str | None = None,
        api_version: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = access_token if access_token is not None else settings.meta_access_token
        self.ad_account_id = (
            ad_account_id if ad_account_id is not None else settings.meta_ad_account_id
        )
        self.api_version = api_version or settings.meta_api_version
        self.base_url = (base_url or settings.meta_graph_base_url).rstrip("/")
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{self.api_version}/{path.lstrip('/')}"

    def _require_token(self) -> str:
        if not self.access_token:
            raise MetaAudienceError("Missing Meta credentials: META_ACCESS_TOKEN")
        return self.access_token

    async def _post(self, client: httpx.AsyncClient, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await client.post(self._url(path), json=body)
        except httpx.HTTPError as exc:
            logger.warning("Meta request to %s failed: %s", path, exc)
            raise MetaAudienceError(f"Meta request failed: {exc}") from exc
        if response.status_code >= 400:
            raise MetaAudienceError(f"Meta API error {response.status_code}: {response.text[:500]}")
        return response.json()

    async def create_audience(self, name: str, description: str | None = None) -> str:
        token = self._require_token()
        if not self.ad_account_id:
            raise MetaAudienceError("Missing Meta credentials: META_AD_ACCOUNT_ID")
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            data = await self._post(
                client,
                f"act_{self.ad_account_id}/customaudiences",
                {
                    "name": name,
                    "description": description or "",
                    "subtype": "CUSTOM",
                    "customer_file_source": "USER_PROVIDED_ONLY",
                    "access_token": token,
                },
            )
        audience_id = data.get("id")
        if not isinstance(audience_id, str):
            raise MetaAudienceError("Meta response missing audience id")
        return audience_id

    async def add_users(self, audience_id: str, emails: Iterable[str]) -> int:
        """Upload hashed emails in batches; returns how many Meta reports received."""

        token = self._require_token()
        hashed = [hash_identifier(email) for email in emails if email and email.strip()]
        total = 0
        async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
            for batch in _batched(hashed, UPLOAD_BATCH_SIZE):
                data = await self._post(
                    client,
                    f"{audience_id}/users",
                    {
                        "payload": {"schema": ["EMAIL"], "data": [[value] for value in batch]},
                        "access_token": token,
                    },
                )
                total += int(data.get("num_received") or len(batch))
        return total


__all__ = [
    "UPLOAD_BATCH_SIZE",
    "MetaAudienceError",
    "MetaAudienceClient",
    "hash_identifier",
]
