from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from fastapi import HTTPException, status

from .. import schemas
from ..permissions import is_staff
from ..repositories import courses as courses_repo
from ..repositories import entitlements as entitlements_repo
from ..repositories import lessons as lessons_repo
from ..utils.drip import (
    DripType,
    compute_unlocked_at,
    format_time_until_unlock,
    is_lesson_unlocked,
)
from ..utils.timezones import utcnow


class LessonLockedError(HTTPException):
    """423 raised for drip-gated lessons; carries the unlock time in the detail."""

    def __init__(self, unlocks_at: datetime | None, label: str) -> None:
        super().__init__(
            status_code=status.HTTP_423_LOCKED,
            detail={
                "message": "Lesson is locked",
                "unlocks_at": unlocks_at.isoformat() if unlocks_at else None,
                "unlock_label": label,
            },
        )
        self.unlocks_at = unlocks_at


def _lesson_state(
    lesson: Mapping[str, Any],
    *,
    enrolled_at: datetime | None,
    bypass: bool,
    now: datetime,
) -> tuple[bool, datetime | None, str]:
    drip_type = lesson.get("drip_type") or DripType.immediate
    drip_value = lesson.get("drip_value")
    if bypass:
        return False, None, "Available now"
    if enrolled_at is None and not lesson.get("is_preview"):
        return True, None, "Enroll to unlock"
    if lesson.get("is_preview") and enrolled_at is None:
        return False, None, "Free preview"

    unlocks_at = compute_unlocked_at(drip_type, drip_value, enrolled_at)
    unlocked = is_lesson_unlocked(drip_type, drip_value, enrolled_at, now=now)
    if unlocked:
        return False, unlocks_at, "Available now"
    return True, unlocks_at, format_time_until_unlock(unlocks_at, now=now)


async def _enrollment(user: Mapping[str, Any] | None, course_id: Any) -> dict[str, Any] | None:
    if not user:
        return None
    return await entitlements_repo.get_active_course_entitlement(str(user["id"]), str(course_id))


async def get_course_outline(
    course_id: str,
    user: Mapping[str, Any] | None,
    *,
    now: datetime | None = None,
) -> schemas.CourseOutlineResponse:
    course = await courses_repo.get_course(course_id)
    if not course or not course.get("is_published"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")

    moment = now or utcnow()
    entitlement = await _enrollment(user, course["id"])
    enrolled_at = entitlement.get("created_at") if entitlement else None
    bypass = bool(user) and is_staff(user)

    lessons = await lessons_repo.list_course_lessons(course["id"])
    items: list[schemas.LessonOutlineItem] = []
    for lesson in lessons:
        locked, unlocks_at, label = _lesson_state(
            lesson, enrolled_at=enrolled_at, bypass=bypass, now=moment
        )
        items.append(
            schemas.LessonOutlineItem(
                id=lesson["id"],
                title=lesson["title"],
                lesson_type=lesson.get("lesson_type"),
                position=lesson.get("position") or 0,
                duration_minutes=lesson.get("duration_minutes"),
                is_preview=bool(lesson.get("is_preview")),
                drip_type=lesson.get("drip_type") or DripType.immediate,
                is_locked=locked,
                unlocks_at=unlocks_at,
                unlock_label=label,
            )
        )

    return schemas.CourseOutlineResponse(
        course=schemas.Course(**course),
        enrolled=entitlement is not None,
        enrolled_at=enrolled_at,
        lessons=items,
    )


async def get_lesson_for_user(
    lesson_id: str,
    user: Mapping[str, Any] | None,
    *,
    now: datetime | None = None,
) -> schemas.LessonDetailResponse:
    lesson = await lessons_repo.get_lesson(lesson_id)
    if not lesson or not lesson.get("is_published"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")

    detail = schemas.LessonDetailResponse(**lesson)
    if lesson.get("is_preview") or (user and is_staff(user)):
        return detail

    entitlement = await _enrollment(user, lesson["course_id"])
    if entitlement is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Enrollment required"
        )

    moment = now or utcnow()
    enrolled_at = entitlement.get("created_at")
    drip_type = lesson.get("drip_type") or DripType.immediate
    if not is_lesson_unlocked(drip_type, lesson.get("drip_value"), enrolled_at, now=moment):
        unlocks_at = compute_unlocked_at(drip_type, lesson.get("drip_value"), enrolled_at)
        raise LessonLockedError(unlocks_at, format_time_until_unlock(unlocks_at, now=moment))
    return detail


__all__ = ["LessonLockedError", "get_course_outline", "get_lesson_for_user"]
