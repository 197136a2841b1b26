import uuid
from datetime import timedelta

import pytest

from academy.repositories import admin_actions
from academy.repositories import video_batches as batches_repo
from academy.routes import video_batches as video_batches_routes
from academy.utils.timezones import utcnow

pytestmark = pytest.mark.anyio("asyncio")


def _batch(owner_id, **overrides):
    row = {
        "id": uuid.uuid4(),
        "name": "Launch clips",
        "status": "pending",
        "briefs": [{"title": "A"}],
        "results": None,
        "total_count": 4,
        "processed_count": 0,
        "failed_count": 0,
        "error_message": None,
        "created_by": owner_id,
        "created_at": utcnow(),
        "started_at": None,
        "completed_at": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def audit(monkeypatch):
    actions = []

    async def fake_log_action(user_id, action, details=None):
        actions.append((str(user_id), action, details))

    monkeypatch.setattr(admin_actions, "log_action", fake_log_action)
    return actions


async def test_create_batch_creates_items_and_audit_row(async_client, teacher, audit, monkeypatch):
    captured = {}

    async def fake_create_batch(*, name, briefs, created_by):
        captured.update(name=name, briefs=briefs, created_by=created_by)
        batch = _batch(created_by, name=name, briefs=briefs, total_count=len(briefs))
        items = [
            {
                "id": uuid.uuid4(),
                "batch_id": batch["id"],
                "brief": brief,
                "status": "pending",
                "sort_order": index,
            }
            for index, brief in enumerate(briefs)
        ]
        return batch, items

    monkeypatch.setattr(batches_repo, "create_batch", fake_create_batch)

    resp = await async_client.post(
        "/api/admin/video-batches",
        json={
            "name": "Launch clips",
            "briefs": [
                {"title": "Teaser", "platform": "tiktok", "customParameters": {"tone": "fun"}},
                {"title": "Recap", "duration": 30},
            ],
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["batch"]["total_count"] == 2
    assert [item["sort_order"] for item in body["items"]] == [0, 1]
    assert captured["briefs"][0]["customParameters"] == {"tone": "fun"}
    assert "description" not in captured["briefs"][0]
    assert audit[0][1] == "created_batch_video_job"
    assert audit[0][2]["total_briefs"] == 2


@pytest.mark.parametrize("briefs", [[], [{"title": ""}], [{"title": f"v{i}"} for i in range(101)]])
async def test_create_batch_validates_briefs(async_client, teacher, briefs):
    resp = await async_client.post("/api/admin/video-batches", json={"name": "x", "briefs": briefs})
    assert resp.status_code == 422


async def test_list_batches_scopes_students_to_their_own(async_client, student, monkeypatch):
    seen = {}

    async def fake_list_batches(*, created_by=None):
        seen["created_by"] = created_by
        return []

    monkeypatch.setattr(batches_repo, "list_batches", fake_list_batches)
    resp = await async_client.get("/api/admin/video-batches")
    assert resp.status_code == 200
    assert seen["created_by"] == student["id"]


async def test_list_batches_staff_see_everything(async_client, admin, monkeypatch):
    seen = {}

    async def fake_list_batches(*, created_by=None):
        seen["created_by"] = created_by
        return [_batch(uuid.uuid4())]

    monkeypatch.setattr(batches_repo, "list_batches", fake_list_batches)
    resp = await async_client.get("/api/admin/video-batches")
    assert resp.status_code == 200
    assert seen["created_by"] is None
    assert len(resp.json()["batches"]) == 1


async def test_other_users_batch_is_hidden(async_client, student, monkeypatch):
    other = _batch(uuid.uuid4())

    async def fake_get_batch(batch_id):
        return other

    monkeypatch.setattr(batches_repo, "get_batch", fake_get_batch)
    resp = await async_client.get(f"/api/admin/video-batches/{other['id']}")
    assert resp.status_code == 404


async def test_cancel_batch(async_client, teacher, audit, monkeypatch):
    row = _batch(teacher["id"], status="processing")
    updates = {}

    async def fake_get_batch(batch_id):
        return row

    async def fake_update_batch(batch_id, fields):
        updates.update(fields)
        return {**row, **fields}

    monkeypatch.setattr(batches_repo, "get_batch", fake_get_batch)
    monkeypatch.setattr(batches_repo, "update_batch", fake_update_batch)

    resp = await async_client.patch(
        f"/api/admin/video-batches/{row['id']}", json={"status": "cancelled"}
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["batch"]["status"] == "cancelled"
    assert updates == {"status": "cancelled"}
    assert audit[0][1] == "updated_batch_video_job"


async def test_only_cancel_is_allowed(async_client, teacher):
    resp = await async_client.patch(
        f"/api/admin/video-batches/{uuid.uuid4()}", json={"status": "complete"}
    )
    assert resp.status_code == 422


async def test_progress_reports_percentage_and_eta(async_client, teacher, monkeypatch):
    row = _batch(
        teacher["id"],
        status="processing",
        started_at=utcnow() - timedelta(seconds=60),
    )

    async def fake_get_batch(batch_id):
        return row

    async def fake_counts(batch_id):
        return {"complete": 1, "failed": 1, "processing": 1, "pending": 1}

    monkeypatch.setattr(batches_repo, "get_batch", fake_get_batch)
    monkeypatch.setattr(batches_repo, "count_item_statuses", fake_counts)

    resp = await async_client.get(f"/api/admin/video-batches/{row['id']}/progress")
    assert resp.status_code == 200
    progress = resp.json()["progress"]
    assert progress["percentage"] == 50
    assert progress["completed"] == 1
    assert progress["failed"] == 1
    assert 55 <= progress["estimated_time_remaining_seconds"] <= 65


async def test_progress_for_empty_batch(async_client, teacher, monkeypatch):
    row = _batch(teacher["id"], total_count=0)

    async def fake_get_batch(batch_id):
        return row

    async def fake_counts(batch_id):
        return {}

    monkeypatch.setattr(batches_repo, "get_batch", fake_get_batch)
    monkeypatch.setattr(batches_repo, "count_item_statuses", fake_counts)

    resp = await async_client.get(f"/api/admin/video-batches/{row['id']}/progress")
    assert resp.json()["progress"]["percentage"] == 0
    assert resp.json()["progress"]["estimated_time_remaining_seconds"] is None


async def test_start_batch_queues_background_work(async_client, teacher, monkeypatch):
    row = _batch(teacher["id"])
    started = []

    async def fake_get_batch(batch_id):
        return row

    async def fake_start(batch_id):
        started.append(batch_id)

    monkeypatch.setattr(batches_repo, "get_batch", fake_get_batch)
    monkeypatch.setattr(
        video_batches_routes.video_batch_processor, "start_batch_processing", fake_start
    )

    resp = await async_client.post(f"/api/admin/video-batches/{row['id']}/start")
    assert resp.status_code == 202
    assert started == [str(row["id"])]


async def test_delete_batch(async_client, teacher, audit, monkeypatch):
    row = _batch(teacher["id"])

    async def fake_get_batch(batch_id):
        return row

    async def fake_delete(batch_id):
        return True

    monkeypatch.setattr(batches_repo, "get_batch", fake_get_batch)
    monkeypatch.setattr(batches_repo, "delete_batch", fake_delete)

    resp = await async_client.delete(f"/api/admin/video-batches/{row['id']}")
    assert resp.status_code == 204
    assert audit[0][1] == "deleted_batch_video_job"
