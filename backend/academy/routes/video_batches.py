from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Response, status

from .. import schemas
from ..auth import CurrentUser
from ..config import settings
from ..permissions import is_staff
from ..repositories import admin_actions
from ..repositories import video_batches as batches_repo
from ..schemas.video_batches import VideoBatchProgress
from ..services import video_batch_processor
from ..utils.timezones import ensure_aware, utcnow

router = APIRouter(prefix="/api/admin/video-batches", tags=["video-batches"])
logger = logging.getLogger(__name__)


async def _visible_batch(batch_id: str, current: dict) -> dict[str, Any]:
    batch = await batches_repo.get_batch(batch_id)
    if not batch or (not is_staff(current) and str(batch.get("created_by")) != str(current["id"])):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    return batch


def _progress(batch: dict[str, Any], counts: dict[str, int]) -> VideoBatchProgress:
    total = int(batch.get("total_count") or 0)
    finished = counts.get("complete", 0) + counts.get("failed", 0)
    percentage = round(finished / total * 100) if total > 0 else 0

    eta: int | None = None
    started_at = batch.get("started_at")
    if batch.get("status") == "processing" and started_at and finished > 0:
        elapsed = (utcnow() - ensure_aware(started_at)).total_seconds()
        eta = round(elapsed / finished * (total - finished))

    return VideoBatchProgress(
        total=total,
        pending=counts.get("pending", 0),
        processing=counts.get("processing", 0),
        completed=counts.get("complete", 0),
        failed=counts.get("failed", 0),
        percentage=percentage,
        estimated_time_remaining_seconds=eta,
    )


@router.get("", response_model=schemas.VideoBatchListResponse)
async def list_batches(current: CurrentUser):
    created_by = None if is_staff(current) else str(current["id"])
    rows = await batches_repo.list_batches(created_by=created_by)
    return schemas.VideoBatchListResponse(batches=rows)


@router.post(
    "",
    response_model=schemas.VideoBatchDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_batch(payload: schemas.VideoBatchCreateRequest, current: CurrentUser):
    if len(payload.briefs) > settings.video_batch_max_briefs:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A batch may hold at most {settings.video_batch_max_briefs} briefs",
        )
    briefs = [brief.model_dump(by_alias=True, exclude_none=True) for brief in payload.briefs]
    batch, items = await batches_repo.create_batch(
        name=payload.name, briefs=briefs, created_by=str(current["id"])
    )
    await admin_actions.log_action(
        current["id"],
        "created_batch_video_job",
        {"batch_id": str(batch["id"]), "batch_name": payload.name, "total_briefs": len(briefs)},
    )
    logger.info("Batch %s created with %s briefs", batch["id"], len(briefs))
    return schemas.VideoBatchDetailResponse(batch=batch, items=items)


@router.get("/{batch_id}", response_model=schemas.VideoBatchDetailResponse)
async def get_batch(batch_id: str, current: CurrentUser):
    batch = await _visible_batch(batch_id, current)
    items = await batches_repo.list_items(batch_id)
    return schemas.VideoBatchDetailResponse(batch=batch, items=items)


@router.patch("/{batch_id}", response_model=schemas.VideoBatchDetailResponse)
async def update_batch(
    batch_id: str, payload: schemas.VideoBatchUpdateRequest, current: CurrentUser
):
    await _visible_batch(batch_id, current)
    batch = await batches_repo.update_batch(batch_id, {"status": payload.status})
    if not batch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    await admin_actions.log_action(
        current["id"],
        "updated_batch_video_job",
        {"batch_id": batch_id, "status": payload.status},
    )
    return schemas.VideoBatchDetailResponse(batch=batch)


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_batch(batch_id: str, current: CurrentUser):
    await _visible_batch(batch_id, current)
    if not await batches_repo.delete_batch(batch_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    await admin_actions.log_action(
        current["id"], "deleted_batch_video_job", {"batch_id": batch_id}
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{batch_id}/progress", response_model=schemas.VideoBatchProgressResponse)
async def batch_progress(batch_id: str, current: CurrentUser):
    batch = await _visible_batch(batch_id, current)
    counts = await batches_repo.count_item_statuses(batch_id)
    return schemas.VideoBatchProgressResponse(batch=batch, progress=_progress(batch, counts))


@router.post("/{batch_id}/start", status_code=status.HTTP_202_ACCEPTED)
async def start_batch(batch_id: str, current: CurrentUser):
    await _visible_batch(batch_id, current)
    await video_batch_processor.start_batch_processing(batch_id)
    return {"batch_id": batch_id, "status": "queued"}
