from __future__ import annotations

import logging
from typing import Any, Mapping

import sentry_sdk
from fastapi import HTTPException, status

from .. import schemas
from ..metrics import audience_sync_failures_total, audience_sync_users_total
from ..repositories import custom_audiences as audiences_repo
from ..utils.timezones import utcnow
from .meta_audiences import MetaAudienceClient, MetaAudienceError

logger = logging.getLogger(__name__)


async def _require_audience(audience_id: str) -> dict[str, Any]:
    audience = await audiences_repo.get_audience(audience_id)
    if not audience:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Audience not found")
    return audience


async def list_audiences() -> list[dict[str, Any]]:
    return await audiences_repo.list_audiences()


async def get_audience(audience_id: str) -> dict[str, Any]:
    audience = await _require_audience(audience_id)
    audience["sync_history"] = await audiences_repo.list_sync_history(audience_id)
    return audience


async def create_audience(
    user: Mapping[str, Any],
    payload: schemas.CustomAudienceCreateRequest,
    *,
    client: MetaAudienceClient | None = None,
) -> dict[str, Any]:
    client = client or MetaAudienceClient()
    meta_audience_id: str | None = None
    sync_error: str | None = None
    try:
        meta_audience_id = await client.create_audience(payload.name, payload.description)
    except MetaAudienceError as exc:
        logger.warning("Failed to create Meta audience %r: %s", payload.name, exc)
        sync_error = f"Failed to create in Meta: {exc}"

    return await audiences_repo.create_audience(
        name=payload.name,
        description=payload.description,
        audience_type=payload.audience_type,
        config=payload.config,
        meta_audience_id=meta_audience_id,
        sync_status="pending" if meta_audience_id else "error",
        sync_error=sync_error,
        created_by=str(user["id"]),
    )


async def update_audience(
    audience_id: str, payload: schemas.CustomAudienceUpdateRequest
) -> dict[str, Any]:
    await _require_audience(audience_id)
    updated = await audiences_repo.update_audience(
        audience_id, payload.model_dump(exclude_unset=True)
    )
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Audience not found")
    return updated


async def delete_audience(audience_id: str) -> None:
    if not await audiences_repo.delete_audience(audience_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Audience not found")


async def sync_audience(
    audience_id: str,
    *,
    client: MetaAudienceClient | None = None,
) -> schemas.AudienceSyncResponse:
    audience = await _require_audience(audience_id)
    if not audience.get("meta_audience_id"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Audience not yet created in Meta. Create it first.",
        )

    await audiences_repo.update_audience(audience_id, {"sync_status": "syncing"})
    history = await audiences_repo.start_sync_history(audience_id)

    emails = await audiences_repo.list_audience_emails(audience)
    if not emails:
        await audiences_repo.update_audience(
            audience_id,
            {"sync_status": "success", "last_sync_at": utcnow(), "user_count": 0, "sync_error": None},
        )
        await audiences_repo.finish_sync_history(history["id"], status="success", users_sent=0)
        return schemas.AudienceSyncResponse(message="No users to sync", users_sent=0)

    client = client or MetaAudienceClient()
    try:
        users_sent = await client.add_users(audience["meta_audience_id"], emails)
    except MetaAudienceError as exc:
        message = str(exc)
        audience_sync_failures_total.inc()
        sentry_sdk.capture_exception(exc)
        await audiences_repo.update_audience(
            audience_id, {"sync_status": "error", "sync_error": message}
        )
        await audiences_repo.finish_sync_history(
            history["id"], status="error", users_sent=len(emails), error_message=message
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=message) from exc

    audience_sync_users_total.inc(users_sent)
    await audiences_repo.update_audience(
        audience_id,
        {
            "sync_status": "success",
            "last_sync_at": utcnow(),
            "user_count": users_sent,
            "sync_error": None,
        },
    )
    await audiences_repo.finish_sync_history(history["id"], status="success", users_sent=users_sent)
    logger.info("Audience %s synced with %s users", audience_id, users_sent)
    return schemas.AudienceSyncResponse(message="Sync completed successfully", users_sent=users_sent)


__all__ = [
    "list_audiences",
    "get_audience",
    "create_audience",
    "update_audience",
    "delete_audience",
    "sync_audience",
]
