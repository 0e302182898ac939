"""Announcement schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AnnouncementView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    title: str
    content: str
    created_at: datetime
    category: str
    important: bool = False
    link: str | None = None


class AnnouncementWrite(BaseModel):
    """Body for create and update (the update rewrites all editable fields)."""

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=50)
    important: bool = False
