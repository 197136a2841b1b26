from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, model_validator


class CourseCheckoutRequest(BaseModel):
    course_id: Optional[str] = None
    slug: Optional[str] = None

    @model_validator(mode="after")
    def _validate_fields(self):
        if not self.course_id and not self.slug:
            raise ValueError("course_id or slug is required")
        return self


class CheckoutCreateResponse(BaseModel):
    url: str
    session_id: Optional[str] = None
    order_id: Optional[str] = None
