from __future__ import annotations

import re
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from .. import schemas
from ..auth import CurrentUser
from ..permissions import AdminUser
from ..repositories import forums as forums_repo

router = APIRouter(prefix="/api/forums", tags=["forums"])
admin_router = APIRouter(prefix="/api/admin/forums", tags=["forums"])

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def thread_slug(title: str) -> str:
    base = _SLUG_STRIP.sub("-", title.lower()).strip("-")[:80] or "thread"
    return f"{base}-{uuid.uuid4().hex[:8]}"


async def _require_thread(thread_id: str) -> dict:
    thread = await forums_repo.get_thread(thread_id)
    if not thread:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    return thread


@router.get("")
async def list_forums(course_id: str | None = None):
    return {"forums": await forums_repo.list_forums(course_id=course_id)}


@router.get("/{forum_id}/threads")
async def list_threads(
    forum_id: str,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    forum = await forums_repo.get_forum(forum_id)
    if not forum:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Forum not found")
    threads = await forums_repo.list_threads(forum_id, limit=limit, offset=offset)
    return {"forum": forum, "threads": threads}


@router.post("/{forum_id}/threads", status_code=status.HTTP_201_CREATED)
async def create_thread(forum_id: str, payload: schemas.ForumThreadCreate, current: CurrentUser):
    forum = await forums_repo.get_forum(forum_id)
    if not forum or forum.get("is_archived"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Forum not found")
    if forum.get("is_locked"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forum is locked")
    thread = await forums_repo.create_thread(
        forum_id=forum_id,
        user_id=str(current["id"]),
        title=payload.title.strip(),
        content=payload.content,
        slug=thread_slug(payload.title),
    )
    return {"thread": thread}


@router.get("/threads/{thread_id}")
async def get_thread(thread_id: str):
    thread = await _require_thread(thread_id)
    await forums_repo.increment_view_count(thread_id)
    replies = await forums_repo.list_replies(thread_id)
    return {"thread": thread, "replies": replies}


@router.post("/threads/{thread_id}/replies", status_code=status.HTTP_201_CREATED)
async def create_reply(thread_id: str, payload: schemas.ForumReplyCreate, current: CurrentUser):
    thread = await _require_thread(thread_id)
    if thread.get("is_locked"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Thread is locked")
    reply = await forums_repo.create_reply(
        thread_id=thread_id,
        user_id=str(current["id"]),
        content=payload.content,
        parent_reply_id=str(payload.parent_reply_id) if payload.parent_reply_id else None,
    )
    return {"reply": reply}


@router.post("/threads/{thread_id}/upvote", response_model=schemas.UpvoteResponse)
async def toggle_upvote(thread_id: str, current: CurrentUser):
    await _require_thread(thread_id)
    upvoted, count = await forums_repo.toggle_thread_upvote(thread_id, str(current["id"]))
    return schemas.UpvoteResponse(upvoted=upvoted, upvote_count=count)


@admin_router.patch("/threads/{thread_id}")
async def moderate_thread(
    thread_id: str, payload: schemas.ForumThreadModeration, current: AdminUser
):
    await _require_thread(thread_id)
    thread = await forums_repo.moderate_thread(thread_id, payload.model_dump(exclude_none=True))
    if not thread:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thread not found")
    return {"thread": thread}
