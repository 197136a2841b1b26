from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from .. import schemas
from ..auth import CurrentUser
from ..repositories import direct_messages as dm_repo
from ..repositories import profiles as profiles_repo

router = APIRouter(prefix="/api/dm", tags=["direct-messages"])


async def _participant_thread(thread_id: str, current: dict) -> dict:
    thread = await dm_repo.get_thread(thread_id)
    if not thread:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    user_id = str(current["id"])
    if user_id not in {str(thread["user1_id"]), str(thread["user2_id"])}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant")
    return thread


@router.get("/threads")
async def list_threads(current: CurrentUser):
    return {"threads": await dm_repo.list_threads_for_user(str(current["id"]))}


@router.post("/threads", status_code=status.HTTP_201_CREATED)
async def open_thread(payload: schemas.DirectThreadCreate, current: CurrentUser):
    recipient_id = str(payload.recipient_id)
    if recipient_id == str(current["id"]):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot message yourself"
        )
    if not await profiles_repo.user_exists(recipient_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")
    thread = await dm_repo.get_or_create_thread(str(current["id"]), recipient_id)
    message = None
    if payload.message:
        message = await dm_repo.create_message(thread["id"], str(current["id"]), payload.message)
    return {"thread": thread, "message": message}


@router.get("/threads/{thread_id}/messages", response_model=schemas.DirectMessageListResponse)
async def list_messages(
    thread_id: str,
    current: CurrentUser,
    limit: int = Query(default=50, ge=1, le=200),
    before: datetime | None = None,
):
    await _participant_thread(thread_id, current)
    rows = await dm_repo.list_messages(thread_id, limit=limit, before=before)
    return schemas.DirectMessageListResponse(messages=list(reversed(rows)))


@router.post(
    "/threads/{thread_id}/messages",
    response_model=schemas.DirectMessageRecord,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    thread_id: str, payload: schemas.DirectMessageCreate, current: CurrentUser
):
    await _participant_thread(thread_id, current)
    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is empty")
    return await dm_repo.create_message(thread_id, str(current["id"]), content)


@router.post("/threads/{thread_id}/read")
async def mark_read(thread_id: str, current: CurrentUser):
    await _participant_thread(thread_id, current)
    updated = await dm_repo.mark_thread_read(thread_id, str(current["id"]))
    return {"marked_read": updated}
