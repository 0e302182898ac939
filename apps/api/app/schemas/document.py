"""Document request schemas (view models and drafts)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.db.enums import DocumentStatus, DocumentType
from app.schemas.notice import NoticeRead


class DocumentRequestView(BaseModel):
    """Document request as shown to citizens and staff (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    requester_id: UUID
    requester_name: str | None = None
    document_type: DocumentType
    purpose: str
    status: DocumentStatus
    created_at: datetime
    updated_at: datetime
    attachments: list[str] = []
    verified_by: UUID | None = None
    verified_by_name: str | None = None
    approved_by: UUID | None = None
    approved_by_name: str | None = None
    rejection_reason: str | None = None
    additional_notes: str | None = None
    form_details: dict[str, Any] = {}


class DocumentRequestCreate(BaseModel):
    """Citizen submission. Status, id and timestamps are assigned server-side."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_type: DocumentType
    purpose: str = Field(..., min_length=1, max_length=2000)
    attachments: list[str] = []
    additional_notes: str | None = Field(None, max_length=4000)
    # Type-specific fields, e.g. date of birth for birth certificates
    form_details: dict[str, Any] = {}

    @field_validator("purpose")
    @classmethod
    def validate_purpose(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("purpose must not be blank")
        return v


class DocumentTransitionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Status the reviewer was looking at, used to detect a stale view
    expected_status: DocumentStatus | None = None


class DocumentRejectRequest(DocumentTransitionRequest):
    # Blank reasons are refused by the workflow so the notice is emitted there
    reason: str = ""


class DocumentMutationResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    document: DocumentRequestView | None = None
    notices: list[NoticeRead] = []
