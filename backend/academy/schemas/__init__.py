from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator
from uuid import UUID

from ..utils.drip import DripType
from .audiences import (
    AudienceSyncResponse,
    CustomAudienceCreateRequest,
    CustomAudienceRecord,
    CustomAudienceUpdateRequest,
)
from .checkout import CheckoutCreateResponse, CourseCheckoutRequest
from .coaching import (
    BookingStatus,
    CoachingBookingCreateRequest,
    CoachingBookingListResponse,
    CoachingBookingUpdateRequest,
    CoachingSlotCreateRequest,
    CoachingSlotListResponse,
    CoachingSlotUpdateRequest,
)
from .email_programs import (
    DispatchResponse,
    EmailProgramCreateRequest,
    EmailProgramDetailResponse,
    EmailProgramListResponse,
    EmailProgramResponse,
    EmailProgramUpdateRequest,
)
from .video_batches import (
    VideoBatchCreateRequest,
    VideoBatchDetailResponse,
    VideoBatchListResponse,
    VideoBatchProgressResponse,
    VideoBatchUpdateRequest,
    VideoBrief,
)


class Profile(BaseModel):
    id: UUID
    email: str
    role: str
    is_admin: bool
    display_name: str | None = None
    avatar_url: str | None = None


class Course(BaseModel):
    id: UUID
    slug: str
    title: str
    description: str | None = None
    cover_url: str | None = None
    price_cents: int = 0
    currency: str = "usd"
    is_published: bool = False
    created_at: datetime | None = None


class CourseListResponse(BaseModel):
    items: List[Course]


class LessonOutlineItem(BaseModel):
    id: UUID
    title: str
    lesson_type: str | None = None
    position: int = 0
    duration_minutes: int | None = None
    is_preview: bool = False
    drip_type: DripType = DripType.immediate
    is_locked: bool
    unlocks_at: datetime | None = None
    unlock_label: str


class CourseOutlineResponse(BaseModel):
    course: Course
    enrolled: bool
    enrolled_at: datetime | None = None
    lessons: List[LessonOutlineItem]


class LessonDetailResponse(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    lesson_type: str | None = None
    content_html: str | None = None
    video_url: str | None = None
    duration_minutes: int | None = None
    is_preview: bool = False


class LessonCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    lesson_type: str = "video"


class LessonUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    content_html: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    position: Optional[int] = None
    is_published: Optional[bool] = None
    is_preview: Optional[bool] = None


class LessonDripUpdateRequest(BaseModel):
    drip_type: DripType
    drip_value: Any = None


class StreakActivityRequest(BaseModel):
    lessons_completed: int = Field(default=1, ge=0)
    minutes_studied: int = Field(default=0, ge=0)


class StreakStats(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    total_learning_days: int = 0
    last_activity_date: date | None = None
    streak_started_at: date | None = None
    days_this_week: int = 0
    days_this_month: int = 0


class StreakFreeze(BaseModel):
    streak_at_risk: bool
    last_activity_date: date | None = None
    current_streak: int = 0
    hours_until_reset: int = 0


class StreakResponse(BaseModel):
    stats: StreakStats
    freeze: StreakFreeze


class ForumThreadCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    content: str = Field(min_length=1, max_length=20000)


class ForumReplyCreate(BaseModel):
    content: str = Field(min_length=1, max_length=20000)
    parent_reply_id: UUID | None = None


class ForumThreadModeration(BaseModel):
    is_pinned: bool | None = None
    is_locked: bool | None = None
    is_solved: bool | None = None

    @model_validator(mode="after")
    def _require_change(self):
        if self.is_pinned is None and self.is_locked is None and self.is_solved is None:
            raise ValueError("no moderation fields supplied")
        return self


class UpvoteResponse(BaseModel):
    upvoted: bool
    upvote_count: int


class DirectThreadCreate(BaseModel):
    recipient_id: UUID
    message: str | None = Field(default=None, min_length=1, max_length=5000)


class DirectMessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)


class DirectMessageRecord(BaseModel):
    id: UUID
    thread_id: UUID
    sender_id: UUID
    content: str
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime


class DirectMessageListResponse(BaseModel):
    messages: List[DirectMessageRecord]


__all__ = [
    "AudienceSyncResponse",
    "BookingStatus",
    "CheckoutCreateResponse",
    "CoachingBookingCreateRequest",
    "CoachingBookingListResponse",
    "CoachingBookingUpdateRequest",
    "CoachingSlotCreateRequest",
    "CoachingSlotListResponse",
    "CoachingSlotUpdateRequest",
    "Course",
    "CourseCheckoutRequest",
    "CourseListResponse",
    "CourseOutlineResponse",
    "CustomAudienceCreateRequest",
    "CustomAudienceRecord",
    "CustomAudienceUpdateRequest",
    "DirectMessageCreate",
    "DirectMessageListResponse",
    "DirectMessageRecord",
    "DirectThreadCreate",
    "DispatchResponse",
    "DripType",
    "EmailProgramCreateRequest",
    "EmailProgramDetailResponse",
    "EmailProgramListResponse",
    "EmailProgramResponse",
    "EmailProgramUpdateRequest",
    "ForumReplyCreate",
    "ForumThreadCreate",
    "ForumThreadModeration",
    "LessonCreateRequest",
    "LessonDetailResponse",
    "LessonDripUpdateRequest",
    "LessonOutlineItem",
    "LessonUpdateRequest",
    "Profile",
    "StreakActivityRequest",
    "StreakFreeze",
    "StreakResponse",
    "StreakStats",
    "UpvoteResponse",
    "VideoBatchCreateRequest",
    "VideoBatchDetailResponse",
    "VideoBatchListResponse",
    "VideoBatchProgressResponse",
    "VideoBatchUpdateRequest",
    "VideoBrief",
]
