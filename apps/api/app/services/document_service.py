"""Document request data access.

Queries join the requester/verifier/approver profiles in the same round
trip and reshape rows into DocumentRequestView objects. Joined names are
trusted only when the joined value is a structured object whose name is a
string; anything else becomes None so one bad join never fails a list.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.notices import notify_error, notify_success
from app.db.enums import DocumentStatus, DocumentType
from app.db.models import DocumentRequest
from app.schemas.document import DocumentRequestCreate, DocumentRequestView
from app.services.results import ErrorKind, ServiceResult
from app.utils.datetime_parsing import parse_timestamp

logger = logging.getLogger(__name__)

ALL_FILTER = "all"

_PROFILE_JOINS = (
    joinedload(DocumentRequest.requester),
    joinedload(DocumentRequest.verifier),
    joinedload(DocumentRequest.approver),
)

# Values that are never a joined row, even though they may carry a .name-ish shape
_SCALAR_TYPES = (str, bytes, int, float, bool, list, tuple, set)


def joined_name(joined: object) -> str | None:
    """Display name from a joined profile, or None if missing or malformed."""
    if joined is None or isinstance(joined, _SCALAR_TYPES):
        return None
    if isinstance(joined, Mapping):
        name = joined.get("name")
    else:
        name = getattr(joined, "name", None)
    return name if isinstance(name, str) else None


def _coerce_document_type(value: object) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        logger.warning("Unknown document type %r, showing as other", value)
        return DocumentType.OTHER


def _coerce_attachments(value: object) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def to_document_view(row) -> DocumentRequestView | None:
    """
    Reshape a document row (ORM object or attribute bag) into a view model.

    Returns None for rows whose status is not a known workflow state.
    """
    try:
        status = DocumentStatus(row.status)
    except ValueError:
        logger.warning("Skipping document request %s with unknown status %r", row.id, row.status)
        return None

    created_at = parse_timestamp(row.created_at)
    updated_at = parse_timestamp(getattr(row, "updated_at", None)) or created_at
    form_details = row.form_details if isinstance(row.form_details, Mapping) else {}

    return DocumentRequestView(
        id=row.id,
        requester_id=row.user_id,
        requester_name=joined_name(getattr(row, "requester", None)),
        document_type=_coerce_document_type(row.document_type),
        purpose=row.purpose or "",
        status=status,
        created_at=created_at,
        updated_at=updated_at,
        attachments=_coerce_attachments(row.attachments),
        verified_by=row.verified_by,
        verified_by_name=joined_name(getattr(row, "verifier", None)),
        approved_by=row.approved_by,
        approved_by_name=joined_name(getattr(row, "approver", None)),
        rejection_reason=row.rejection_reason,
        additional_notes=row.additional_notes,
        form_details=dict(form_details),
    )


def _to_views(rows: Iterable) -> list[DocumentRequestView]:
    views = (to_document_view(row) for row in rows)
    return [view for view in views if view is not None]


def _enum_value(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, (DocumentStatus, DocumentType)):
        return value.value
    text = str(value)
    return None if text == ALL_FILTER else text


def list_document_requests(
    db: Session,
    *,
    user_id: UUID | None = None,
    status: DocumentStatus | str | None = None,
    document_type: DocumentType | str | None = None,
) -> ServiceResult[list[DocumentRequestView]]:
    """List document requests, newest first, optionally scoped and filtered."""
    query = select(DocumentRequest).options(*_PROFILE_JOINS)
    if user_id is not None:
        query = query.where(DocumentRequest.user_id == user_id)
    status_value = _enum_value(status)
    if status_value:
        query = query.where(DocumentRequest.status == status_value)
    type_value = _enum_value(document_type)
    if type_value:
        query = query.where(DocumentRequest.document_type == type_value)
    query = query.order_by(DocumentRequest.created_at.desc())

    try:
        rows = db.execute(query).unique().scalars().all()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error fetching document requests")
        notify_error("Failed to load document requests")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to load document requests")
    return ServiceResult.success(_to_views(rows))


def list_user_document_requests(
    db: Session, user_id: UUID
) -> ServiceResult[list[DocumentRequestView]]:
    """List one citizen's own requests."""
    return list_document_requests(db, user_id=user_id)


def get_document_request(
    db: Session, document_id: UUID
) -> ServiceResult[DocumentRequestView]:
    """Get a single request; data is None when it does not exist."""
    query = (
        select(DocumentRequest)
        .options(*_PROFILE_JOINS)
        .where(DocumentRequest.id == document_id)
    )
    try:
        row = db.execute(query).unique().scalar_one_or_none()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error fetching document request %s", document_id)
        notify_error("Failed to load document request")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to load document request")
    if row is None:
        return ServiceResult.success(None)
    return ServiceResult.success(to_document_view(row))


def submit_document_request(
    db: Session,
    user_id: UUID,
    draft: DocumentRequestCreate,
) -> ServiceResult[DocumentRequestView]:
    """Create a request on behalf of a citizen. Always starts as pending."""
    purpose = (draft.purpose or "").strip()
    if not purpose:
        notify_error("Please describe the purpose of the request")
        return ServiceResult.failure(ErrorKind.VALIDATION, "A purpose is required")
    form_details = draft.form_details if isinstance(draft.form_details, Mapping) else {}
    request = DocumentRequest(
        user_id=user_id,
        document_type=draft.document_type.value,
        purpose=purpose,
        status=DocumentStatus.PENDING.value,
        attachments=list(draft.attachments),
        additional_notes=draft.additional_notes,
        form_details=dict(form_details),
    )
    try:
        db.add(request)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error submitting document request for %s", user_id)
        notify_error("Failed to submit request. Please try again.")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to submit document request")

    logger.info("Document request %s submitted (%s)", request.id, request.document_type)
    notify_success("Document request submitted successfully")

    created = get_document_request(db, request.id)
    if created.ok and created.data is not None:
        return created
    return ServiceResult.success(to_document_view(request))


def filter_documents(
    documents: Iterable[DocumentRequestView],
    *,
    search: str | None = None,
    status: DocumentStatus | str | None = None,
    document_type: DocumentType | str | None = None,
) -> list[DocumentRequestView]:
    """
    Filter an in-memory snapshot.

    search is a case-insensitive substring match over type, purpose and
    requester name; status and type are exact matches. None or "all" turns
    a predicate off.
    """
    needle = (search or "").strip().lower()
    status_value = _enum_value(status)
    type_value = _enum_value(document_type)

    matches: list[DocumentRequestView] = []
    for doc in documents:
        if needle:
            haystacks = [doc.document_type.value, doc.purpose, doc.requester_name or ""]
            if not any(needle in text.lower() for text in haystacks):
                continue
        if status_value and doc.status.value != status_value:
            continue
        if type_value and doc.document_type.value != type_value:
            continue
        matches.append(doc)
    return matches


def document_type_label(document_type: DocumentType | str) -> str:
    """"birth" -> "Birth Certificate"."""
    value = document_type.value if isinstance(document_type, DocumentType) else str(document_type)
    if not value:
        return "Certificate"
    return f"{value[0].upper()}{value[1:]} Certificate"
