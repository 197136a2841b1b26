from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from fastapi import HTTPException, status

from .. import schemas
from ..config import settings
from ..metrics import email_program_runs_enqueued_total
from ..repositories import email_programs as programs_repo
from ..utils.schedule_parser import InvalidScheduleError, next_run_time, schedule_text_to_cron
from ..utils.timezones import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "type",
    "status",
    "timezone",
    "audience_type",
    "audience_filter_json",
    "prompt_base",
    "prompt_current",
)


def _schedule_fields(
    schedule_text: str | None,
    timezone_name: str,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    try:
        cron = schedule_text_to_cron(schedule_text)
        next_run = next_run_time(schedule_text, timezone_name, now=now)
    except InvalidScheduleError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"schedule_text": schedule_text, "schedule_cron": cron, "next_run_at": next_run}


async def _require_program(program_id: str) -> dict[str, Any]:
    program = await programs_repo.get_program(program_id)
    if not program:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program not found")
    return program


async def list_programs() -> list[dict[str, Any]]:
    return await programs_repo.list_programs()


async def create_program(
    user: Mapping[str, Any],
    payload: schemas.EmailProgramCreateRequest,
) -> dict[str, Any]:
    if not payload.name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")

    timezone_name = payload.timezone or settings.email_program_default_timezone
    schedule_text = payload.schedule_text or None
    fields: dict[str, Any] = {
        "name": payload.name,
        "description": payload.description,
        "type": payload.type.value,
        "timezone": timezone_name,
        "audience_type": payload.audience_type.value,
        "audience_filter_json": payload.audience_filter_json,
        "prompt_base": payload.prompt_base,
        "prompt_current": payload.prompt_current,
        "status": "draft",
        "created_by": str(user["id"]),
    }
    fields.update(_schedule_fields(schedule_text, timezone_name))
    program = await programs_repo.create_program(fields)
    logger.info("Email program %s created", program["id"])
    return program


async def get_program_detail(program_id: str) -> dict[str, Any]:
    program = await _require_program(program_id)
    versions = await programs_repo.list_versions(program_id)
    runs = await programs_repo.list_recent_runs(program_id, limit=10)
    return {"program": program, "versions": versions, "runs": runs}


async def update_program(
    program_id: str,
    payload: schemas.EmailProgramUpdateRequest,
) -> dict[str, Any]:
    existing = await _require_program(program_id)
    supplied = payload.model_dump(exclude_unset=True)

    updates: dict[str, Any] = {}
    for field in UPDATABLE_FIELDS:
        if field in supplied:
            value = supplied[field]
            updates[field] = value.value if hasattr(value, "value") else value

    if "schedule_text" in supplied or "timezone" in supplied:
        schedule_text = supplied.get("schedule_text", existing.get("schedule_text")) or None
        timezone_name = (
            supplied.get("timezone")
            or existing.get("timezone")
            or settings.email_program_default_timezone
        )
        updates.update(_schedule_fields(schedule_text, timezone_name))

    program = await programs_repo.update_program(program_id, updates)
    if not program:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program not found")
    return program


async def delete_program(program_id: str) -> None:
    deleted = await programs_repo.delete_program(program_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Program not found")


async def dispatch_due_programs(now: datetime | None = None) -> list[dict[str, Any]]:
    """Queue one run per active program whose next run is due, then advance its schedule."""

    moment = now or utcnow()
    runs: list[dict[str, Any]] = []
    for program in await programs_repo.list_due_programs(moment):
        try:
            next_run = next_run_time(
                program.get("schedule_text"),
                program.get("timezone") or settings.email_program_default_timezone,
                now=moment,
            )
        except InvalidScheduleError as exc:
            logger.warning(
                "Email program %s has an unusable schedule: %s", program["id"], exc
            )
            next_run = None
        run = await programs_repo.enqueue_run(
            program["id"],
            scheduled_for=program["next_run_at"],
            next_run_at=next_run,
        )
        if run is None:
            logger.info(
                "Email program %s run at %s was already queued elsewhere",
                program["id"],
                program["next_run_at"],
            )
            continue
        runs.append(run)
        email_program_runs_enqueued_total.inc()
        logger.info(
            "Queued email run %s for program %s; next run %s",
            run["id"],
            program["id"],
            next_run.isoformat() if next_run else None,
        )
    return runs


__all__ = [
    "list_programs",
    "create_program",
    "get_program_detail",
    "update_program",
    "delete_program",
    "dispatch_due_programs",
]
