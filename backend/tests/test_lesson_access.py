import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from academy.repositories import courses as courses_repo
from academy.repositories import entitlements as entitlements_repo
from academy.repositories import lessons as lessons_repo
from academy.services import lesson_access_service

from conftest import make_user

pytestmark = pytest.mark.anyio("asyncio")

NOW = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)
COURSE_ID = uuid.uuid4()


def _lesson(title, position, **overrides):
    row = {
        "id": uuid.uuid4(),
        "course_id": COURSE_ID,
        "title": title,
        "lesson_type": "video",
        "position": position,
        "content_html": f"<p>{title}</p>",
        "video_url": None,
        "duration_minutes": 10,
        "is_published": True,
        "is_preview": False,
        "drip_type": "immediate",
        "drip_value": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def catalog(monkeypatch):
    lessons = [
        _lesson("Welcome", 1000, is_preview=True),
        _lesson("Week one", 2000, drip_type="days_after_enrollment", drip_value=7),
        _lesson("Launch day", 3000, drip_type="specific_date", drip_value="2024-06-01T00:00:00Z"),
        _lesson("Bonus", 4000),
    ]
    state = {
        "course": {
            "id": COURSE_ID,
            "slug": "yoga-basics",
            "title": "Yoga Basics",
            "price_cents": 2900,
            "currency": "usd",
            "is_published": True,
        },
        "lessons": lessons,
        "entitlement": None,
    }

    async def fake_get_course(course_id):
        return state["course"] if str(course_id) == str(COURSE_ID) else None

    async def fake_list_lessons(course_id, *, published_only=True):
        return state["lessons"]

    async def fake_get_lesson(lesson_id):
        for lesson in state["lessons"]:
            if str(lesson["id"]) == str(lesson_id):
                return lesson
        return None

    async def fake_entitlement(user_id, course_id):
        return state["entitlement"]

    monkeypatch.setattr(courses_repo, "get_course", fake_get_course)
    monkeypatch.setattr(lessons_repo, "list_course_lessons", fake_list_lessons)
    monkeypatch.setattr(lessons_repo, "get_lesson", fake_get_lesson)
    monkeypatch.setattr(entitlements_repo, "get_active_course_entitlement", fake_entitlement)
    return state


def _enroll(catalog, days_ago):
    catalog["entitlement"] = {"id": uuid.uuid4(), "created_at": NOW - timedelta(days=days_ago)}


async def test_outline_for_anonymous_visitor(catalog):
    outline = await lesson_access_service.get_course_outline(str(COURSE_ID), None, now=NOW)

    assert outline.enrolled is False
    labels = [(item.title, item.is_locked, item.unlock_label) for item in outline.lessons]
    assert labels == [
        ("Welcome", False, "Free preview"),
        ("Week one", True, "Enroll to unlock"),
        ("Launch day", True, "Enroll to unlock"),
        ("Bonus", True, "Enroll to unlock"),
    ]


async def test_outline_for_recent_enrollment(catalog):
    _enroll(catalog, days_ago=2)
    outline = await lesson_access_service.get_course_outline(
        str(COURSE_ID), make_user("student"), now=NOW
    )

    by_title = {item.title: item for item in outline.lessons}
    assert outline.enrolled is True
    assert by_title["Bonus"].is_locked is False
    assert by_title["Week one"].is_locked is True
    assert by_title["Week one"].unlocks_at == NOW + timedelta(days=5)
    assert by_title["Week one"].unlock_label == "Unlocks in 5 days"
    assert by_title["Launch day"].is_locked is True
    assert by_title["Launch day"].unlock_label == "Unlocks in 21 days"


async def test_outline_unlocks_after_drip_period(catalog):
    _enroll(catalog, days_ago=7)
    outline = await lesson_access_service.get_course_outline(
        str(COURSE_ID), make_user("student"), now=NOW
    )
    week_one = next(item for item in outline.lessons if item.title == "Week one")
    assert week_one.is_locked is False
    assert week_one.unlock_label == "Available now"


async def test_staff_bypass_drip(catalog):
    outline = await lesson_access_service.get_course_outline(
        str(COURSE_ID), make_user("teacher"), now=NOW
    )
    assert not any(item.is_locked for item in outline.lessons)


async def test_outline_unknown_course(catalog):
    with pytest.raises(HTTPException) as excinfo:
        await lesson_access_service.get_course_outline(str(uuid.uuid4()), None, now=NOW)
    assert excinfo.value.status_code == 404


async def test_lesson_detail_preview_is_public(catalog):
    preview = catalog["lessons"][0]
    detail = await lesson_access_service.get_lesson_for_user(str(preview["id"]), None, now=NOW)
    assert detail.content_html == "<p>Welcome</p>"


async def test_lesson_detail_requires_enrollment(catalog):
    bonus = catalog["lessons"][3]
    with pytest.raises(HTTPException) as excinfo:
        await lesson_access_service.get_lesson_for_user(
            str(bonus["id"]), make_user("student"), now=NOW
        )
    assert excinfo.value.status_code == 403


async def test_lesson_detail_locked_by_drip(catalog):
    _enroll(catalog, days_ago=1)
    week_one = catalog["lessons"][1]
    with pytest.raises(lesson_access_service.LessonLockedError) as excinfo:
        await lesson_access_service.get_lesson_for_user(
            str(week_one["id"]), make_user("student"), now=NOW
        )
    assert excinfo.value.status_code == 423
    assert excinfo.value.unlocks_at == NOW + timedelta(days=6)
    assert excinfo.value.detail["unlock_label"] == "Unlocks in 6 days"


async def test_unpublished_lesson_is_hidden(catalog):
    catalog["lessons"][3]["is_published"] = False
    with pytest.raises(HTTPException) as excinfo:
        await lesson_access_service.get_lesson_for_user(
            str(catalog["lessons"][3]["id"]), make_user("admin"), now=NOW
        )
    assert excinfo.value.status_code == 404


async def test_outline_over_http(async_client, login_as, catalog):
    login_as(None)
    resp = await async_client.get(f"/api/courses/{COURSE_ID}/outline")
    assert resp.status_code == 200
    body = resp.json()
    assert body["course"]["slug"] == "yoga-basics"
    assert [lesson["is_locked"] for lesson in body["lessons"]] == [False, True, True, True]


async def test_locked_lesson_over_http(async_client, student, catalog):
    catalog["entitlement"] = {"id": uuid.uuid4(), "created_at": datetime.now(timezone.utc)}
    week_one = catalog["lessons"][1]
    resp = await async_client.get(f"/api/lessons/{week_one['id']}")
    assert resp.status_code == 423
    assert resp.json()["detail"]["message"] == "Lesson is locked"
