import uuid
from datetime import datetime, timezone

import pytest

from academy.config import settings
from academy.repositories import email_programs as programs_repo
from academy.services import email_programs_service

pytestmark = pytest.mark.anyio("asyncio")


def _program(**overrides):
    row = {
        "id": uuid.uuid4(),
        "name": "Weekly digest",
        "description": None,
        "type": "broadcast",
        "status": "draft",
        "schedule_text": None,
        "schedule_cron": None,
        "timezone": "America/New_York",
        "next_run_at": None,
        "last_run_at": None,
        "audience_type": "all",
        "audience_filter_json": {},
        "prompt_base": None,
        "prompt_current": None,
        "created_by": None,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "updated_at": None,
    }
    row.update(overrides)
    return row


async def test_create_program_applies_defaults_and_schedule(async_client, admin, monkeypatch):
    captured = {}

    async def fake_create(fields):
        captured.update(fields)
        return _program(**fields)

    monkeypatch.setattr(programs_repo, "create_program", fake_create)

    resp = await async_client.post(
        "/api/admin/email-programs",
        json={"name": "  Weekly digest ", "schedule_text": "every monday at 9am"},
    )
    assert resp.status_code == 201, resp.text
    assert captured["name"] == "Weekly digest"
    assert captured["status"] == "draft"
    assert captured["type"] == "broadcast"
    assert captured["audience_type"] == "all"
    assert captured["timezone"] == "America/New_York"
    assert captured["schedule_cron"] == "0 9 * * 1"
    assert captured["next_run_at"] is not None
    assert captured["created_by"] == admin["id"]


async def test_create_program_requires_name(async_client, admin):
    resp = await async_client.post("/api/admin/email-programs", json={"name": "   "})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Name is required"


async def test_create_program_rejects_unknown_schedule(async_client, admin):
    resp = await async_client.post(
        "/api/admin/email-programs",
        json={"name": "Digest", "schedule_text": "whenever it feels right"},
    )
    assert resp.status_code == 400


async def test_create_program_without_schedule(async_client, admin, monkeypatch):
    async def fake_create(fields):
        assert fields["schedule_cron"] is None
        assert fields["next_run_at"] is None
        return _program(**fields)

    monkeypatch.setattr(programs_repo, "create_program", fake_create)
    resp = await async_client.post("/api/admin/email-programs", json={"name": "Digest"})
    assert resp.status_code == 201


async def test_email_programs_are_admin_only(async_client, teacher):
    resp = await async_client.get("/api/admin/email-programs")
    assert resp.status_code == 403


async def test_get_missing_program(async_client, admin, monkeypatch):
    async def fake_get(program_id):
        return None

    monkeypatch.setattr(programs_repo, "get_program", fake_get)
    resp = await async_client.get(f"/api/admin/email-programs/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Program not found"


async def test_update_timezone_recomputes_schedule(async_client, admin, monkeypatch):
    existing = _program(schedule_text="every day at 8am", schedule_cron="0 8 * * *")
    captured = {}

    async def fake_get(program_id):
        return existing

    async def fake_update(program_id, fields):
        captured.update(fields)
        return {**existing, **fields}

    monkeypatch.setattr(programs_repo, "get_program", fake_get)
    monkeypatch.setattr(programs_repo, "update_program", fake_update)

    resp = await async_client.patch(
        f"/api/admin/email-programs/{existing['id']}",
        json={"timezone": "Europe/London", "status": "active"},
    )
    assert resp.status_code == 200, resp.text
    assert captured["timezone"] == "Europe/London"
    assert captured["status"] == "active"
    assert captured["schedule_cron"] == "0 8 * * *"
    assert captured["next_run_at"].minute == 0


async def test_update_ignores_schedule_when_not_supplied(async_client, admin, monkeypatch):
    existing = _program()
    captured = {}

    async def fake_get(program_id):
        return existing

    async def fake_update(program_id, fields):
        captured.update(fields)
        return {**existing, **fields}

    monkeypatch.setattr(programs_repo, "get_program", fake_get)
    monkeypatch.setattr(programs_repo, "update_program", fake_update)

    resp = await async_client.patch(
        f"/api/admin/email-programs/{existing['id']}", json={"name": "Renamed"}
    )
    assert resp.status_code == 200
    assert captured == {"name": "Renamed"}


async def test_delete_program(async_client, admin, monkeypatch):
    async def fake_delete(program_id):
        return True

    monkeypatch.setattr(programs_repo, "delete_program", fake_delete)
    resp = await async_client.delete(f"/api/admin/email-programs/{uuid.uuid4()}")
    assert resp.status_code == 204


async def test_dispatch_due_programs_advances_schedule(monkeypatch):
    now = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)
    due = _program(
        status="active",
        schedule_text="every day at 8am",
        timezone="America/New_York",
        next_run_at=datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc),
    )
    broken = _program(
        status="active",
        schedule_text="sometimes",
        next_run_at=datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc),
    )
    enqueued = []

    async def fake_due(moment):
        assert moment == now
        return [due, broken]

    async def fake_enqueue(program_id, *, scheduled_for, next_run_at):
        enqueued.append((program_id, scheduled_for, next_run_at))
        return {"id": uuid.uuid4(), "program_id": program_id, "status": "queued"}

    monkeypatch.setattr(programs_repo, "list_due_programs", fake_due)
    monkeypatch.setattr(programs_repo, "enqueue_run", fake_enqueue)

    runs = await email_programs_service.dispatch_due_programs(now)

    assert len(runs) == 2
    assert enqueued[0][2] == datetime(2024, 3, 5, 13, 0, tzinfo=timezone.utc)
    assert enqueued[1][2] is None


async def test_dispatch_skips_program_claimed_by_overlapping_run(monkeypatch):
    now = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)
    slot = datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)
    program = _program(
        status="active", schedule_text="every day at 8am", next_run_at=slot
    )
    claimed: set = set()

    async def fake_due(moment):
        return [program]

    async def fake_enqueue(program_id, *, scheduled_for, next_run_at):
        # Conditional claim: only the first dispatcher to advance this slot wins.
        if (program_id, scheduled_for) in claimed:
            return None
        claimed.add((program_id, scheduled_for))
        return {"id": uuid.uuid4(), "program_id": program_id, "status": "queued"}

    monkeypatch.setattr(programs_repo, "list_due_programs", fake_due)
    monkeypatch.setattr(programs_repo, "enqueue_run", fake_enqueue)

    first = await email_programs_service.dispatch_due_programs(now)
    second = await email_programs_service.dispatch_due_programs(now)

    assert len(first) == 1
    assert second == []


async def test_cron_endpoint_requires_secret(async_client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    resp = await async_client.post(
        "/api/cron/email-programs", headers={"Authorization": "Bearer wrong"}
    )
    assert resp.status_code == 401


async def test_cron_endpoint_unconfigured(async_client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", None)
    resp = await async_client.post("/api/cron/email-programs")
    assert resp.status_code == 503


async def test_cron_endpoint_dispatches(async_client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    run_id = uuid.uuid4()

    async def fake_dispatch(now=None):
        return [{"id": run_id}]

    monkeypatch.setattr(email_programs_service, "dispatch_due_programs", fake_dispatch)
    resp = await async_client.post(
        "/api/cron/email-programs", headers={"Authorization": "Bearer s3cret"}
    )
    assert resp.status_code == 200
    assert resp.json() == {"enqueued": 1, "run_ids": [str(run_id)]}
