from typing import Optional

from fastapi import APIRouter, Query, status

from .. import schemas
from ..auth import CurrentUser
from ..permissions import TeacherUser
from ..services import coaching_service

router = APIRouter(prefix="/api/coaching", tags=["coaching"])


@router.get("/slots", response_model=schemas.CoachingSlotListResponse)
async def list_slots(coach_id: Optional[str] = None):
    rows = await coaching_service.list_available_slots(coach_id)
    return schemas.CoachingSlotListResponse(slots=rows)


@router.post("/slots", status_code=status.HTTP_201_CREATED)
async def create_slot(payload: schemas.CoachingSlotCreateRequest, current: TeacherUser):
    return {"slot": await coaching_service.create_slot(current, payload)}


@router.patch("/slots/{slot_id}")
async def update_slot(
    slot_id: str, payload: schemas.CoachingSlotUpdateRequest, current: TeacherUser
):
    return {"slot": await coaching_service.update_slot(slot_id, current, payload)}


@router.delete("/slots/{slot_id}")
async def cancel_slot(slot_id: str, current: TeacherUser):
    return {"slot": await coaching_service.cancel_slot(slot_id, current)}


@router.get("/bookings", response_model=schemas.CoachingBookingListResponse)
async def list_bookings(
    current: CurrentUser,
    as_coach: bool = False,
    status_filter: Optional[schemas.BookingStatus] = Query(default=None, alias="status"),
):
    rows = await coaching_service.list_bookings(
        current,
        as_coach=as_coach,
        status_filter=status_filter.value if status_filter else None,
    )
    return schemas.CoachingBookingListResponse(bookings=rows)


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
async def create_booking(payload: schemas.CoachingBookingCreateRequest, current: CurrentUser):
    return {"booking": await coaching_service.book_slot(current, payload)}


@router.get("/bookings/{booking_id}")
async def get_booking(booking_id: str, current: CurrentUser):
    return {"booking": await coaching_service.get_booking(booking_id, current)}


@router.patch("/bookings/{booking_id}")
async def update_booking(
    booking_id: str, payload: schemas.CoachingBookingUpdateRequest, current: CurrentUser
):
    return {"booking": await coaching_service.update_booking(booking_id, current, payload)}
