from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID


class BatchStatus(str, Enum):
    pending = "pending"
    queuing = "queuing"
    processing = "processing"
    complete = "complete"
    failed = "failed"
    cancelled = "cancelled"


class ItemStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    complete = "complete"
    failed = "failed"


class VideoBrief(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = Field(min_length=1)
    description: str | None = None
    format: str | None = None
    platform: str | None = None
    duration: int | None = Field(default=None, gt=0)
    custom_parameters: dict[str, Any] | None = Field(default=None, alias="customParameters")


class VideoBatchCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    briefs: list[VideoBrief] = Field(min_length=1, max_length=100)


class VideoBatchUpdateRequest(BaseModel):
    status: Literal["cancelled"]


class VideoBatchRecord(BaseModel):
    id: UUID
    name: str
    status: BatchStatus
    briefs: list[dict[str, Any]] = Field(default_factory=list)
    results: list[dict[str, Any]] | None = None
    total_count: int = 0
    processed_count: int = 0
    failed_count: int = 0
    error_message: str | None = None
    created_by: Optional[UUID] = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class VideoBatchItemRecord(BaseModel):
    id: UUID
    batch_id: UUID
    brief: dict[str, Any]
    status: ItemStatus
    result: dict[str, Any] | None = None
    error_message: str | None = None
    sort_order: int = 0


class VideoBatchDetailResponse(BaseModel):
    batch: VideoBatchRecord
    items: list[VideoBatchItemRecord] = Field(default_factory=list)


class VideoBatchListResponse(BaseModel):
    batches: list[VideoBatchRecord]


class VideoBatchProgress(BaseModel):
    total: int
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    percentage: int = 0
    estimated_time_remaining_seconds: int | None = None


class VideoBatchProgressResponse(BaseModel):
    batch: VideoBatchRecord
    progress: VideoBatchProgress
