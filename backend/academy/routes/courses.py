from fastapi import APIRouter, HTTPException, Query, status

from .. import schemas
from ..auth import OptionalCurrentUser
from ..repositories import courses as courses_repo
from ..services import lesson_access_service

router = APIRouter(prefix="/api/courses", tags=["courses"])
lessons_router = APIRouter(prefix="/api/lessons", tags=["courses"])


@router.get("", response_model=schemas.CourseListResponse)
async def list_courses(
    search: str | None = Query(default=None, min_length=2),
    limit: int = Query(default=50, ge=1, le=100),
):
    rows = await courses_repo.list_published_courses(search=search, limit=limit)
    return schemas.CourseListResponse(items=[schemas.Course(**row) for row in rows])


@router.get("/by-slug/{slug}", response_model=schemas.Course)
async def course_by_slug(slug: str):
    row = await courses_repo.get_course_by_slug(slug)
    if not row or not row.get("is_published"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return schemas.Course(**row)


@router.get("/{course_id}/outline", response_model=schemas.CourseOutlineResponse)
async def course_outline(course_id: str, current: OptionalCurrentUser):
    return await lesson_access_service.get_course_outline(course_id, current)


@lessons_router.get("/{lesson_id}", response_model=schemas.LessonDetailResponse)
async def lesson_detail(lesson_id: str, current: OptionalCurrentUser):
    return await lesson_access_service.get_lesson_for_user(lesson_id, current)
