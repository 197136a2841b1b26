from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field
from uuid import UUID


class SlotType(str, Enum):
    one_on_one = "one_on_one"
    group = "group"
    workshop = "workshop"


class LocationType(str, Enum):
    virtual = "virtual"
    physical = "physical"
    hybrid = "hybrid"


class SlotStatus(str, Enum):
    available = "available"
    booked = "booked"
    cancelled = "cancelled"
    completed = "completed"


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"
    no_show = "no_show"


class CoachingSlotCreateRequest(BaseModel):
    title: str = Field(default="Coaching Session", min_length=1)
    description: Optional[str] = None
    duration_minutes: int = Field(default=60, gt=0, le=480)
    slot_type: SlotType = SlotType.one_on_one
    max_participants: int = Field(default=1, gt=0)
    price_cents: int = Field(default=0, ge=0)
    start_time: datetime
    end_time: datetime
    timezone: str = "America/New_York"
    location: Optional[str] = None
    location_type: LocationType = LocationType.virtual
    is_published: bool = True
    video_call_url: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class CoachingSlotUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=480)
    max_participants: Optional[int] = Field(default=None, gt=0)
    price_cents: Optional[int] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    location_type: Optional[LocationType] = None
    status: Optional[SlotStatus] = None
    is_published: Optional[bool] = None
    video_call_url: Optional[str] = None


class CoachingBookingCreateRequest(BaseModel):
    slot_id: UUID
    notes: Optional[str] = None


class CoachingBookingUpdateRequest(BaseModel):
    status: Optional[BookingStatus] = None
    notes: Optional[str] = None
    coach_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None


class CoachingSlotListResponse(BaseModel):
    slots: list[dict[str, Any]]


class CoachingBookingListResponse(BaseModel):
    bookings: list[dict[str, Any]]
