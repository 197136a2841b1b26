from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from fastapi import HTTPException, status

from .. import schemas
from ..repositories import coaching as coaching_repo
from ..utils.timezones import ensure_aware, is_valid_timezone, utcnow

logger = logging.getLogger(__name__)

ACTIVE_BOOKING_STATUSES = frozenset({"pending", "confirmed"})
STUDENT_FIELDS = frozenset({"notes", "status", "cancellation_reason"})
FULL_SLOT = "This slot is at full capacity"


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def list_available_slots(coach_id: str | None = None) -> list[dict[str, Any]]:
    return await coaching_repo.list_available_slots(now=utcnow(), coach_id=coach_id)


async def create_slot(
    coach: Mapping[str, Any],
    payload: schemas.CoachingSlotCreateRequest,
) -> dict[str, Any]:
    start_time = ensure_aware(payload.start_time)
    end_time = ensure_aware(payload.end_time)
    if end_time <= start_time:
        raise _bad_request("End time must be after start time")
    if not is_valid_timezone(payload.timezone):
        raise _bad_request(f"Unknown timezone: {payload.timezone}")

    coach_id = str(coach["id"])
    if await coaching_repo.has_overlapping_slot(coach_id, start_time, end_time):
        raise _bad_request("You have an overlapping slot during this time")

    fields = payload.model_dump(mode="python")
    fields["start_time"] = start_time
    fields["end_time"] = end_time
    for key in ("slot_type", "location_type"):
        fields[key] = fields[key].value if hasattr(fields[key], "value") else fields[key]
    return await coaching_repo.create_slot(coach_id, fields)


async def _require_owned_slot(slot_id: str, coach: Mapping[str, Any]) -> dict[str, Any]:
    slot = await coaching_repo.get_slot(slot_id)
    if not slot:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coaching slot not found")
    if str(slot["coach_id"]) != str(coach["id"]) and coach.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return slot


async def update_slot(
    slot_id: str,
    coach: Mapping[str, Any],
    payload: schemas.CoachingSlotUpdateRequest,
) -> dict[str, Any]:
    slot = await _require_owned_slot(slot_id, coach)
    updates = {
        key: (value.value if hasattr(value, "value") else value)
        for key, value in payload.model_dump(exclude_unset=True).items()
    }
    start_time = ensure_aware(updates.get("start_time") or slot["start_time"])
    end_time = ensure_aware(updates.get("end_time") or slot["end_time"])
    if end_time <= start_time:
        raise _bad_request("End time must be after start time")
    if "start_time" in updates or "end_time" in updates:
        if await coaching_repo.has_overlapping_slot(
            slot["coach_id"], start_time, end_time, exclude_slot_id=slot_id
        ):
            raise _bad_request("You have an overlapping slot during this time")
    if "max_participants" in updates and updates["max_participants"] < int(
        slot.get("current_participants") or 0
    ):
        raise _bad_request("Capacity cannot drop below confirmed participants")

    updated = await coaching_repo.update_slot(slot_id, updates)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coaching slot not found")
    return updated


async def cancel_slot(slot_id: str, coach: Mapping[str, Any]) -> dict[str, Any]:
    await _require_owned_slot(slot_id, coach)
    updated = await coaching_repo.update_slot(slot_id, {"status": "cancelled"})
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coaching slot not found")
    return updated


async def book_slot(
    student: Mapping[str, Any],
    payload: schemas.CoachingBookingCreateRequest,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    slot = await coaching_repo.get_slot(str(payload.slot_id))
    if not slot:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coaching slot not found")
    if slot.get("status") != "available":
        raise _bad_request("This slot is no longer available")
    if ensure_aware(slot["start_time"]) <= (now or utcnow()):
        raise _bad_request("Cannot book a slot that has already started")

    student_id = str(student["id"])
    if await coaching_repo.find_active_booking(slot["id"], student_id):
        raise _bad_request("You already have a booking for this slot")
    if int(slot.get("current_participants") or 0) >= int(slot.get("max_participants") or 1):
        raise _bad_request(FULL_SLOT)

    is_free = int(slot.get("price_cents") or 0) == 0
    try:
        booking = await coaching_repo.create_booking(
            slot=slot,
            student_id=student_id,
            status="confirmed" if is_free else "pending",
            notes=payload.notes,
            confirmed_at=(now or utcnow()) if is_free else None,
        )
    except coaching_repo.SlotFullError as exc:
        raise _bad_request(FULL_SLOT) from exc
    logger.info("Booking %s created for slot %s (%s)", booking["id"], slot["id"], booking["status"])
    return booking


async def list_bookings(
    user: Mapping[str, Any],
    *,
    as_coach: bool = False,
    status_filter: str | None = None,
) -> list[dict[str, Any]]:
    if as_coach:
        return await coaching_repo.list_bookings(coach_id=str(user["id"]), status=status_filter)
    return await coaching_repo.list_bookings(student_id=str(user["id"]), status=status_filter)


async def get_booking(booking_id: str, user: Mapping[str, Any]) -> dict[str, Any]:
    booking = await coaching_repo.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    user_id = str(user["id"])
    if user_id not in {str(booking["student_id"]), str(booking["coach_id"])} and user.get(
        "role"
    ) != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return booking


async def update_booking(
    booking_id: str,
    user: Mapping[str, Any],
    payload: schemas.CoachingBookingUpdateRequest,
) -> dict[str, Any]:
    booking = await get_booking(booking_id, user)
    supplied = payload.model_dump(exclude_unset=True)
    new_status = supplied.get("status")
    if new_status is not None and hasattr(new_status, "value"):
        new_status = new_status.value

    is_coach = str(booking["coach_id"]) == str(user["id"])
    updates: dict[str, Any] = {}
    if is_coach:
        if "coach_notes" in supplied:
            updates["coach_notes"] = supplied["coach_notes"]
        if new_status:
            updates["status"] = new_status
    else:
        if "notes" in supplied:
            updates["notes"] = supplied["notes"]
        if new_status and new_status != "cancelled":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Students can only cancel bookings",
            )
        if new_status == "cancelled":
            updates["status"] = "cancelled"

    if not updates:
        raise _bad_request("No valid fields to update")

    stamp = utcnow()
    if updates.get("status") == "cancelled":
        if booking.get("status") not in ACTIVE_BOOKING_STATUSES:
            raise _bad_request("Booking is not active")
        updates["cancelled_at"] = stamp
        if supplied.get("cancellation_reason"):
            updates["cancellation_reason"] = supplied["cancellation_reason"]
    elif updates.get("status") == "confirmed":
        updates["booking_confirmed_at"] = stamp
    elif updates.get("status") == "completed":
        updates["completed_at"] = stamp

    if updates.get("status") == "confirmed" and booking.get("status") != "confirmed":
        slot = await coaching_repo.get_slot(str(booking["slot_id"]))
        if slot and int(slot.get("current_participants") or 0) >= int(
            slot.get("max_participants") or 1
        ):
            raise _bad_request(FULL_SLOT)

    try:
        updated = await coaching_repo.update_booking(booking, updates)
    except coaching_repo.SlotFullError as exc:
        raise _bad_request(FULL_SLOT) from exc
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return updated


__all__ = [
    "list_available_slots",
    "create_slot",
    "update_slot",
    "cancel_slot",
    "book_slot",
    "list_bookings",
    "get_booking",
    "update_booking",
]
