"""Sequential processor for video batch jobs.

Items are rendered one at a time in ``sort_order``. Before each item the batch
row is re-read so a cancellation issued through the API stops the loop at the
next item boundary. A batch ends ``failed`` only when every item failed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import sentry_sdk
from fastapi import HTTPException, status

from ..logging_context import bind_log_context, reset_log_context
from ..metrics import video_batch_items_total, video_batches_finished_total, video_batches_running
from ..repositories import video_batches as batches_repo
from ..utils.timezones import utcnow
from .video_renderer import HttpVideoRenderer, RenderResult, VideoRenderer, VideoRenderError

logger = logging.getLogger(__name__)

_ERROR_LIMIT = 500


class BatchNotFoundError(LookupError):
    def __init__(self, batch_id: str) -> None:
        super().__init__(f"Batch not found: {batch_id}")
        self.batch_id = batch_id


@dataclass(frozen=True)
class BatchProgress:
    total: int
    processed: int
    failed: int
    current_item: int


ProgressCallback = Callable[[BatchProgress], None]
ItemCallback = Callable[[str, RenderResult], None]

_running: dict[str, asyncio.Task[None]] = {}


def _truncate(message: str, limit: int = _ERROR_LIMIT) -> str:
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


async def _render_item(renderer: VideoRenderer, brief: dict[str, Any]) -> RenderResult:
    try:
        return await renderer.render(brief)
    except VideoRenderError as exc:
        return RenderResult(success=False, error=str(exc))


async def process_batch(
    batch_id: str,
    *,
    renderer: VideoRenderer | None = None,
    on_progress: ProgressCallback | None = None,
    on_item_complete: ItemCallback | None = None,
) -> str:
    """Render every outstanding item of ``batch_id`` and return the final batch status."""

    renderer = renderer or HttpVideoRenderer()
    batch = await batches_repo.get_batch(batch_id)
    if not batch:
        raise BatchNotFoundError(batch_id)

    try:
        await batches_repo.update_batch(
            batch_id,
            {"status": "processing", "started_at": utcnow(), "error_message": None},
        )
        items = await batches_repo.list_items(batch_id)

        processed = sum(1 for item in items if item.get("status") == "complete")
        failed = 0
        cancelled = False

        for index, item in enumerate(items, start=1):
            if item.get("status") == "complete":
                continue
            current_status = await batches_repo.get_batch_status(batch_id)
            if current_status is None or current_status == "cancelled":
                logger.info(
                    "Batch %s was %s; stopping before item %s",
                    batch_id,
                    "deleted" if current_status is None else "cancelled",
                    index,
                )
                cancelled = True
                break

            item_id = str(item["id"])
            await batches_repo.update_item(
                item_id,
                {"status": "processing", "started_at": utcnow(), "error_message": None},
            )
            result = await _render_item(renderer, item.get("brief") or {})

            if result.success:
                await batches_repo.update_item(
                    item_id,
                    {"status": "complete", "result": result.to_json(), "completed_at": utcnow()},
                )
                processed += 1
                video_batch_items_total.labels(status="complete").inc()
            else:
                await batches_repo.update_item(
                    item_id,
                    {
                        "status": "failed",
                        "error_message": _truncate(result.error or "Unknown error"),
                        "completed_at": utcnow(),
                    },
                )
                failed += 1
                video_batch_items_total.labels(status="failed").inc()

            await batches_repo.update_batch(
                batch_id, {"processed_count": processed, "failed_count": failed}
            )
            if on_progress:
                on_progress(
                    BatchProgress(
                        total=len(items), processed=processed, failed=failed, current_item=index
                    )
                )
            if on_item_complete:
                on_item_complete(item_id, result)

        results = [
            item["result"]
            for item in await batches_repo.list_items(batch_id)
            if item.get("status") == "complete" and item.get("result") is not None
        ]
        summary = {"completed_at": utcnow(), "results": results}
        if cancelled:
            final_status = "cancelled"
            await batches_repo.update_batch(batch_id, summary)
        else:
            final_status = "failed" if failed == len(items) else "complete"
            finished = await batches_repo.finish_batch(batch_id, {"status": final_status, **summary})
            if finished is None:
                # Cancelled or deleted while the last item was rendering.
                final_status = "cancelled"
                await batches_repo.update_batch(batch_id, summary)
    except Exception as exc:
        logger.exception("Error processing batch %s", batch_id)
        await batches_repo.update_batch(
            batch_id,
            {
                "status": "failed",
                "error_message": _truncate(str(exc) or "Unknown error"),
                "completed_at": utcnow(),
            },
        )
        video_batches_finished_total.labels(status="failed").inc()
        raise

    video_batches_finished_total.labels(status=final_status).inc()
    logger.info(
        "Batch %s finished with status %s (%s processed, %s failed)",
        batch_id,
        final_status,
        processed,
        failed,
    )
    return final_status


def _log_progress(batch_id: str) -> ProgressCallback:
    def _callback(progress: BatchProgress) -> None:
        logger.info(
            "Batch %s progress: %s/%s (%s failed)",
            batch_id,
            progress.processed,
            progress.total,
            progress.failed,
        )

    return _callback


def _log_item(item_id: str, result: RenderResult) -> None:
    logger.info("Item %s completed: %s", item_id, "success" if result.success else "failed")


async def _run_in_background(batch_id: str, renderer: VideoRenderer | None) -> None:
    token = bind_log_context(batch_id=batch_id)
    video_batches_running.inc()
    try:
        await process_batch(
            batch_id,
            renderer=renderer,
            on_progress=_log_progress(batch_id),
            on_item_complete=_log_item,
        )
    except Exception as exc:
        sentry_sdk.capture_exception(exc)
        logger.error("Batch %s failed: %s", batch_id, exc)
    finally:
        video_batches_running.dec()
        _running.pop(batch_id, None)
        reset_log_context(token)


async def start_batch_processing(
    batch_id: str,
    *,
    renderer: VideoRenderer | None = None,
) -> asyncio.Task[None]:
    """Schedule ``process_batch`` as a background task and return immediately."""

    batch = await batches_repo.get_batch(batch_id)
    if not batch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    if batch_id in _running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Batch is already processing"
        )
    if batch.get("status") == "cancelled":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Batch has been cancelled"
        )
    if batch.get("status") == "processing":
        logger.warning("Batch %s is marked processing with no live task; restarting it", batch_id)

    task = asyncio.create_task(_run_in_background(batch_id, renderer))
    _running[batch_id] = task
    logger.info("Batch %s queued for processing", batch_id)
    return task


__all__ = [
    "BatchNotFoundError",
    "BatchProgress",
    "process_batch",
    "start_batch_processing",
]
