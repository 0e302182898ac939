"""Staff and staff performance schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.schemas.notice import NoticeRead


class StaffPerformanceView(BaseModel):
    """
    Derived per-staff metrics, recomputed on every fetch.

    last_active is the staff member's join date; real activity is not tracked.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    staff_id: UUID
    staff_name: str
    complaints_resolved: int = 0
    documents_reviewed: int = 0
    documents_approved: int = 0
    last_active: datetime


class StaffMemberView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    user_id: UUID
    name: str
    designation: str | None = None
    is_active: bool
    joined_at: datetime


class StaffToggleRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Current state as displayed; the toggle writes the opposite
    is_active: bool


class StaffRemovalResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    staff_deleted: bool = False
    role_reset: bool = False
    failed_step: str | None = None
    notices: list[NoticeRead] = []
