from fastapi import APIRouter, HTTPException, status

from .. import schemas
from ..permissions import TeacherUser
from ..repositories import courses as courses_repo
from ..repositories import lessons as lessons_repo
from ..utils.drip import normalize_drip_value

router = APIRouter(prefix="/studio", tags=["studio"])


async def _require_course_owner(course_id: str, current: dict) -> dict:
    course = await courses_repo.get_course(course_id)
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    if current.get("role") != "admin" and str(course.get("created_by")) != str(current["id"]):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not course owner")
    return course


async def _require_lesson_owner(lesson_id: str, current: dict) -> dict:
    lesson = await lessons_repo.get_lesson(lesson_id)
    if not lesson:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    await _require_course_owner(str(lesson["course_id"]), current)
    return lesson


@router.get("/courses/{course_id}/lessons")
async def list_lessons(course_id: str, current: TeacherUser):
    await _require_course_owner(course_id, current)
    rows = await lessons_repo.list_course_lessons(course_id, published_only=False)
    return {"items": rows}


@router.post("/courses/{course_id}/lessons", status_code=status.HTTP_201_CREATED)
async def create_lesson(
    course_id: str, payload: schemas.LessonCreateRequest, current: TeacherUser
):
    await _require_course_owner(course_id, current)
    return await lessons_repo.create_lesson(
        course_id=course_id, title=payload.title, lesson_type=payload.lesson_type
    )


@router.patch("/lessons/{lesson_id}")
async def update_lesson(
    lesson_id: str, payload: schemas.LessonUpdateRequest, current: TeacherUser
):
    await _require_lesson_owner(lesson_id, current)
    row = await lessons_repo.update_lesson(lesson_id, payload.model_dump(exclude_unset=True))
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    return row


@router.put("/lessons/{lesson_id}/drip")
async def update_lesson_drip(
    lesson_id: str, payload: schemas.LessonDripUpdateRequest, current: TeacherUser
):
    await _require_lesson_owner(lesson_id, current)
    try:
        drip_value = normalize_drip_value(payload.drip_type, payload.drip_value)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    row = await lessons_repo.update_lesson(
        lesson_id, {"drip_type": payload.drip_type.value, "drip_value": drip_value}
    )
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    return row
