"""Document request models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import DocumentStatus
from app.db.models.profiles import Profile, utcnow
from app.db.types import JsonType


class DocumentRequest(Base):
    """
    A citizen's application for an official certificate.

    Status moves pending -> verified -> approved, or to rejected from either
    pre-approval state. verified_by / approved_by / rejection_reason are only
    populated for the statuses that own them.
    """

    __tablename__ = "document_requests"
    __table_args__ = (
        Index("idx_document_requests_user", "user_id"),
        Index("idx_document_requests_status", "status"),
        Index("idx_document_requests_verified_by", "verified_by"),
        Index("idx_document_requests_approved_by", "approved_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    document_type: Mapped[str] = mapped_column(String(30), nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=DocumentStatus.PENDING.value,
        server_default=DocumentStatus.PENDING.value,
        nullable=False,
    )
    attachments: Mapped[list | None] = mapped_column(JsonType, default=list, nullable=True)
    form_details: Mapped[dict | None] = mapped_column(JsonType, default=dict, nullable=True)
    additional_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    verified_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships (joined for display names)
    requester: Mapped["Profile"] = relationship(foreign_keys=[user_id])
    verifier: Mapped["Profile | None"] = relationship(foreign_keys=[verified_by])
    approver: Mapped["Profile | None"] = relationship(foreign_keys=[approved_by])
