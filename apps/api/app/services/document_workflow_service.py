"""Document request status workflow.

    pending --verify--> verified --approve--> approved
    pending | verified --reject--> rejected

approved and rejected are terminal. Each transition is a single partial
update keyed by document id that also stamps the acting staff member (or
the rejection reason) and clears the fields the new status does not own,
so that:

    verified_by set  => status in {verified, approved}
    approved_by set  => status == approved
    rejection_reason => status == rejected

Two write modes (WORKFLOW_CONDITIONAL_UPDATES):
- conditional: UPDATE ... WHERE status = <expected>; if another staff
  member moved the request first, nothing is written and a conflict is
  reported.
- unconditional: the row is written by id alone. Concurrent transitions
  are last-write-wins.

In both modes the precondition is checked against the stored status, so a
caller cannot skip a step by claiming a status the request does not have.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.notices import notify_error, notify_success
from app.db.enums import DocumentStatus
from app.db.models import DocumentRequest
from app.schemas.document import DocumentRequestView
from app.services import document_service
from app.services.results import ErrorKind, ServiceResult

logger = logging.getLogger(__name__)


TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.VERIFIED, DocumentStatus.REJECTED}),
    DocumentStatus.VERIFIED: frozenset({DocumentStatus.APPROVED, DocumentStatus.REJECTED}),
    DocumentStatus.APPROVED: frozenset(),
    DocumentStatus.REJECTED: frozenset(),
}

_ACTION_NAMES = {
    DocumentStatus.VERIFIED: "verify",
    DocumentStatus.APPROVED: "approve",
    DocumentStatus.REJECTED: "reject",
}


def can_transition(current: DocumentStatus | str, target: DocumentStatus | str) -> bool:
    """Whether the workflow allows moving from current to target."""
    try:
        current = DocumentStatus(current)
        target = DocumentStatus(target)
    except ValueError:
        return False
    return target in TRANSITIONS[current]


def allowed_transitions(current: DocumentStatus | str) -> frozenset[DocumentStatus]:
    """Targets reachable from current (drives which actions are offered)."""
    try:
        return TRANSITIONS[DocumentStatus(current)]
    except ValueError:
        return frozenset()


def transition_values(
    target: DocumentStatus,
    staff_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Column values written for a transition to target."""
    values: dict = {
        "status": target.value,
        "updated_at": now or datetime.now(timezone.utc),
    }
    if target == DocumentStatus.VERIFIED:
        values.update(verified_by=staff_id, approved_by=None, rejection_reason=None)
    elif target == DocumentStatus.APPROVED:
        values.update(approved_by=staff_id, rejection_reason=None)
    elif target == DocumentStatus.REJECTED:
        values.update(rejection_reason=reason, verified_by=None, approved_by=None)
    else:
        raise ValueError(f"{target.value} is not a transition target")
    return values


def _read_status(db: Session, document_id: UUID) -> ServiceResult[DocumentStatus]:
    try:
        raw = db.execute(
            select(DocumentRequest.status).where(DocumentRequest.id == document_id)
        ).scalar_one_or_none()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error reading status of document request %s", document_id)
        notify_error("Failed to update document status. Please try again.")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to read document status")
    if raw is None:
        notify_error("Document request not found")
        return ServiceResult.failure(ErrorKind.NOT_FOUND, f"Document request {document_id} not found")
    try:
        return ServiceResult.success(DocumentStatus(raw))
    except ValueError:
        notify_error("Document request is in an unknown state")
        return ServiceResult.failure(
            ErrorKind.INVALID_TRANSITION, f"Unknown status {raw!r} on document request {document_id}"
        )


def _row_exists(db: Session, document_id: UUID) -> bool:
    return (
        db.execute(
            select(DocumentRequest.id).where(DocumentRequest.id == document_id)
        ).scalar_one_or_none()
        is not None
    )


def transition(
    db: Session,
    document_id: UUID,
    target: DocumentStatus,
    staff_id: UUID | None,
    reason: str | None = None,
    *,
    current_status: DocumentStatus | str | None = None,
    conditional: bool | None = None,
) -> ServiceResult[DocumentRequestView]:
    """
    Move a document request to target.

    The precondition is always checked against the stored status.
    current_status is the status the caller last displayed; it only marks
    the caller's view as stale (a conflict in conditional mode, logged in
    last-write-wins mode). Validation and precondition failures return
    before any write is issued.
    """
    action = _ACTION_NAMES.get(target)
    if action is None:
        notify_error(f"Cannot move a document request to {target.value}")
        return ServiceResult.failure(
            ErrorKind.INVALID_TRANSITION, f"{target.value} is not a transition target"
        )

    if staff_id is None:
        notify_error("Staff ID not found")
        return ServiceResult.failure(ErrorKind.VALIDATION, "A staff identity is required")

    if target == DocumentStatus.REJECTED:
        reason = (reason or "").strip()
        if not reason:
            notify_error("Please provide a reason for rejection")
            return ServiceResult.failure(ErrorKind.VALIDATION, "A rejection reason is required")

    if conditional is None:
        conditional = settings.WORKFLOW_CONDITIONAL_UPDATES

    read = _read_status(db, document_id)
    if not read.ok:
        return ServiceResult(error=read.error)
    current = read.data

    seen = current_status.value if isinstance(current_status, DocumentStatus) else current_status
    if seen is not None and seen != current.value:
        if conditional:
            logger.info(
                "Conditional %s of document request %s refused: caller saw %s, stored %s",
                action,
                document_id,
                seen,
                current.value,
            )
            notify_error("This request was updated by someone else. Refresh and try again.")
            return ServiceResult.failure(
                ErrorKind.CONFLICT,
                f"Document request {document_id} is no longer {seen}",
            )
        logger.info(
            "Stale %s of document request %s: caller saw %s, stored %s",
            action,
            document_id,
            seen,
            current.value,
        )

    if not can_transition(current, target):
        notify_error(f"Cannot {action} a document request that is {current.value}")
        return ServiceResult.failure(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot {action} document request {document_id} from {current.value}",
        )

    stmt = update(DocumentRequest).where(DocumentRequest.id == document_id)
    if conditional:
        stmt = stmt.where(DocumentRequest.status == current.value)
    stmt = stmt.values(**transition_values(target, staff_id, reason)).execution_options(
        synchronize_session=False
    )

    try:
        result = db.execute(stmt)
        if result.rowcount == 0:
            db.rollback()
            if conditional and _row_exists(db, document_id):
                logger.info(
                    "Conditional %s of document request %s lost a race (expected %s)",
                    action,
                    document_id,
                    current.value,
                )
                notify_error("This request was updated by someone else. Refresh and try again.")
                return ServiceResult.failure(
                    ErrorKind.CONFLICT,
                    f"Document request {document_id} is no longer {current.value}",
                )
            notify_error("Document request not found")
            return ServiceResult.failure(
                ErrorKind.NOT_FOUND, f"Document request {document_id} not found"
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating document status to %s", target.value)
        notify_error("Failed to update document status. Please try again.")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to update document status")

    logger.info(
        "Document request %s %s -> %s by %s", document_id, current.value, target.value, staff_id
    )
    notify_success(f"Document request {target.value} successfully")

    # The write is acknowledged even if the follow-up read fails
    refreshed = document_service.get_document_request(db, document_id)
    return ServiceResult.success(refreshed.data if refreshed.ok else None)


def verify(
    db: Session,
    document_id: UUID,
    staff_id: UUID | None,
    *,
    current_status: DocumentStatus | str | None = None,
    conditional: bool | None = None,
) -> ServiceResult[DocumentRequestView]:
    """pending -> verified, stamping verified_by."""
    return transition(
        db,
        document_id,
        DocumentStatus.VERIFIED,
        staff_id,
        current_status=current_status,
        conditional=conditional,
    )


def approve(
    db: Session,
    document_id: UUID,
    staff_id: UUID | None,
    *,
    current_status: DocumentStatus | str | None = None,
    conditional: bool | None = None,
) -> ServiceResult[DocumentRequestView]:
    """verified -> approved, stamping approved_by."""
    return transition(
        db,
        document_id,
        DocumentStatus.APPROVED,
        staff_id,
        current_status=current_status,
        conditional=conditional,
    )


def reject(
    db: Session,
    document_id: UUID,
    staff_id: UUID | None,
    reason: str | None,
    *,
    current_status: DocumentStatus | str | None = None,
    conditional: bool | None = None,
) -> ServiceResult[DocumentRequestView]:
    """pending | verified -> rejected with a non-blank reason."""
    return transition(
        db,
        document_id,
        DocumentStatus.REJECTED,
        staff_id,
        reason,
        current_status=current_status,
        conditional=conditional,
    )
