from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from uuid import UUID


class ProgramType(str, Enum):
    broadcast = "broadcast"
    trigger = "trigger"


class ProgramStatus(str, Enum):
    draft = "draft"
    active = "active"
    paused = "paused"


class AudienceType(str, Enum):
    all = "all"
    segment = "segment"


class EmailProgramCreateRequest(BaseModel):
    name: str = ""
    description: Optional[str] = None
    type: ProgramType = ProgramType.broadcast
    schedule_text: Optional[str] = None
    timezone: Optional[str] = None
    audience_type: AudienceType = AudienceType.all
    audience_filter_json: dict[str, Any] = Field(default_factory=dict)
    prompt_base: Optional[str] = None
    prompt_current: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class EmailProgramUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[ProgramType] = None
    status: Optional[ProgramStatus] = None
    schedule_text: Optional[str] = None
    timezone: Optional[str] = None
    audience_type: Optional[AudienceType] = None
    audience_filter_json: Optional[dict[str, Any]] = None
    prompt_base: Optional[str] = None
    prompt_current: Optional[str] = None


class EmailProgramRecord(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    type: ProgramType
    status: ProgramStatus
    schedule_text: Optional[str] = None
    schedule_cron: Optional[str] = None
    timezone: str
    next_run_at: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    audience_type: AudienceType
    audience_filter_json: dict[str, Any] = Field(default_factory=dict)
    prompt_base: Optional[str] = None
    prompt_current: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmailProgramResponse(BaseModel):
    program: EmailProgramRecord


class EmailProgramListResponse(BaseModel):
    programs: list[EmailProgramRecord]


class EmailProgramDetailResponse(BaseModel):
    program: EmailProgramRecord
    versions: list[dict[str, Any]] = Field(default_factory=list)
    runs: list[dict[str, Any]] = Field(default_factory=list)


class DispatchResponse(BaseModel):
    enqueued: int
    run_ids: list[str] = Field(default_factory=list)
