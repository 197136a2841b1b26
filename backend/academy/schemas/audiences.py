from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from uuid import UUID

AudienceKind = Literal[
    "purchasers",
    "course_completers",
    "engaged_users",
    "abandoned_checkouts",
    "high_value",
    "custom",
]


class CustomAudienceCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    audience_type: AudienceKind
    config: dict[str, Any] = Field(default_factory=dict)


class CustomAudienceUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None


class CustomAudienceRecord(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    audience_type: AudienceKind
    config: dict[str, Any] = Field(default_factory=dict)
    meta_audience_id: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    sync_status: str = "pending"
    sync_error: Optional[str] = None
    user_count: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None


class AudienceSyncResponse(BaseModel):
    message: str
    users_sent: int
