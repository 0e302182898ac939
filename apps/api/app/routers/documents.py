"""Document request endpoints: citizen submissions and the staff review workflow."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.deps import (
    can_review_documents,
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from app.core.notices import collect_notices
from app.db.enums import ROLES_CAN_REVIEW_DOCUMENTS, DocumentStatus, DocumentType
from app.routers.shared import notices_read, raise_service_error
from app.schemas.auth import UserSession
from app.schemas.document import (
    DocumentMutationResponse,
    DocumentRejectRequest,
    DocumentRequestCreate,
    DocumentRequestView,
    DocumentTransitionRequest,
)
from app.services import document_service, document_workflow_service

router = APIRouter()


@router.get("", response_model=list[DocumentRequestView])
def list_documents(
    search: str | None = None,
    status_filter: DocumentStatus | None = Query(None, alias="status"),
    type_filter: DocumentType | None = Query(None, alias="type"),
    session: UserSession = Depends(require_roles(ROLES_CAN_REVIEW_DOCUMENTS)),
    db: Session = Depends(get_db),
):
    """All document requests (staff review list), newest first."""
    with collect_notices() as notices:
        result = document_service.list_document_requests(
            db, status=status_filter, document_type=type_filter
        )
    if not result.ok:
        raise_service_error(result.error, notices)
    return document_service.filter_documents(result.data, search=search)


@router.get("/me", response_model=list[DocumentRequestView])
def list_my_documents(
    search: str | None = None,
    status_filter: DocumentStatus | None = Query(None, alias="status"),
    type_filter: DocumentType | None = Query(None, alias="type"),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """The signed-in citizen's own requests."""
    with collect_notices() as notices:
        result = document_service.list_user_document_requests(db, session.user_id)
    if not result.ok:
        raise_service_error(result.error, notices)
    return document_service.filter_documents(
        result.data, search=search, status=status_filter, document_type=type_filter
    )


@router.get("/{document_id}", response_model=DocumentRequestView)
def get_document(
    document_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = document_service.get_document_request(db, document_id)
    if not result.ok:
        raise_service_error(result.error, notices)
    document = result.data
    # Citizens only see their own requests; hide others as not found
    if document is None or (
        document.requester_id != session.user_id and not can_review_documents(session)
    ):
        raise HTTPException(status_code=404, detail="Document request not found")
    return document


@router.post(
    "",
    response_model=DocumentMutationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def submit_document(
    data: DocumentRequestCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = document_service.submit_document_request(db, session.user_id, data)
    if not result.ok:
        raise_service_error(result.error, notices)
    return DocumentMutationResponse(
        success=True, document=result.data, notices=notices_read(notices)
    )


def _transition_response(result, notices) -> DocumentMutationResponse:
    if not result.ok:
        raise_service_error(result.error, notices)
    return DocumentMutationResponse(
        success=True, document=result.data, notices=notices_read(notices)
    )


@router.post(
    "/{document_id}/verify",
    response_model=DocumentMutationResponse,
    dependencies=[Depends(require_csrf_header)],
)
def verify_document(
    document_id: UUID,
    data: DocumentTransitionRequest | None = None,
    session: UserSession = Depends(require_roles(ROLES_CAN_REVIEW_DOCUMENTS)),
    db: Session = Depends(get_db),
):
    """pending -> verified."""
    data = data or DocumentTransitionRequest()
    with collect_notices() as notices:
        result = document_workflow_service.verify(
            db, document_id, session.user_id, current_status=data.expected_status
        )
    return _transition_response(result, notices)


@router.post(
    "/{document_id}/approve",
    response_model=DocumentMutationResponse,
    dependencies=[Depends(require_csrf_header)],
)
def approve_document(
    document_id: UUID,
    data: DocumentTransitionRequest | None = None,
    session: UserSession = Depends(require_roles(ROLES_CAN_REVIEW_DOCUMENTS)),
    db: Session = Depends(get_db),
):
    """verified -> approved."""
    data = data or DocumentTransitionRequest()
    with collect_notices() as notices:
        result = document_workflow_service.approve(
            db, document_id, session.user_id, current_status=data.expected_status
        )
    return _transition_response(result, notices)


@router.post(
    "/{document_id}/reject",
    response_model=DocumentMutationResponse,
    dependencies=[Depends(require_csrf_header)],
)
def reject_document(
    document_id: UUID,
    data: DocumentRejectRequest,
    session: UserSession = Depends(require_roles(ROLES_CAN_REVIEW_DOCUMENTS)),
    db: Session = Depends(get_db),
):
    """pending | verified -> rejected (reason required)."""
    with collect_notices() as notices:
        result = document_workflow_service.reject(
            db,
            document_id,
            session.user_id,
            data.reason,
            current_status=data.expected_status,
        )
    return _transition_response(result, notices)
