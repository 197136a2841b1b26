from fastapi import APIRouter

from .. import schemas
from ..auth import CurrentUser
from ..services import streak_service

router = APIRouter(prefix="/api/streaks", tags=["streaks"])


@router.post("/activity", response_model=schemas.StreakResponse)
async def record_activity(current: CurrentUser, payload: schemas.StreakActivityRequest | None = None):
    return await streak_service.record_activity(
        str(current["id"]), payload or schemas.StreakActivityRequest()
    )


@router.get("/me", response_model=schemas.StreakResponse)
async def my_streak(current: CurrentUser):
    return await streak_service.get_streak_summary(str(current["id"]))
