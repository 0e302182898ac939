from types import SimpleNamespace
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy import update

from app.core.notices import NoticeLevel, collect_notices
from app.db.enums import DocumentStatus, DocumentType, Role
from app.db.models import DocumentRequest
from app.schemas.document import DocumentRequestCreate
from app.services import document_service
from app.services.results import ErrorKind
from tests.conftest import make_document, make_profile


def test_list_joins_requester_and_reviewer_names(db, citizen, staff_profile):
    make_document(
        db,
        citizen,
        status=DocumentStatus.VERIFIED.value,
        verified_by=staff_profile.id,
    )

    result = document_service.list_document_requests(db)

    assert result.ok
    (doc,) = result.data
    assert doc.requester_name == "Sunita Patil"
    assert doc.verified_by_name == "Ramesh Jadhav"
    assert doc.approved_by is None
    assert doc.approved_by_name is None


def test_list_is_newest_first_and_filters_by_status(db, citizen):
    older = make_document(db, citizen, purpose="older")
    newer = make_document(db, citizen, purpose="newer", status=DocumentStatus.REJECTED.value,
                          rejection_reason="Incomplete")

    all_docs = document_service.list_document_requests(db).data
    assert [d.id for d in all_docs] == [newer.id, older.id]

    pending = document_service.list_document_requests(db, status=DocumentStatus.PENDING).data
    assert [d.id for d in pending] == [older.id]

    unfiltered = document_service.list_document_requests(db, status="all").data
    assert len(unfiltered) == 2


def test_list_user_documents_only_returns_own(db, citizen):
    other = make_profile(db, role=Role.CITIZEN, name="Mohan More")
    mine = make_document(db, citizen)
    make_document(db, other)

    result = document_service.list_user_document_requests(db, citizen.id)

    assert [d.id for d in result.data] == [mine.id]


def test_unknown_document_type_is_shown_as_other(db, citizen):
    make_document(db, citizen, document_type="caste")

    (doc,) = document_service.list_document_requests(db).data

    assert doc.document_type == DocumentType.OTHER


def test_rows_with_unknown_status_are_dropped(db, citizen):
    kept = make_document(db, citizen)
    dropped = make_document(db, citizen)
    db.execute(
        update(DocumentRequest).where(DocumentRequest.id == dropped.id).values(status="archived")
    )
    db.commit()

    result = document_service.list_document_requests(db)

    assert [d.id for d in result.data] == [kept.id]


def test_store_failure_returns_error_and_notice(db, monkeypatch):
    from sqlalchemy.exc import OperationalError

    def boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(db, "execute", boom)

    with collect_notices() as notices:
        result = document_service.list_document_requests(db)

    assert not result.ok
    assert result.data is None
    assert result.error.kind.value == "store"
    assert notices[0].level == NoticeLevel.ERROR


def test_get_document_request_missing_returns_none(db):
    result = document_service.get_document_request(db, uuid4())

    assert result.ok
    assert result.data is None


def test_submit_creates_pending_request(db, citizen):
    draft = DocumentRequestCreate(
        document_type=DocumentType.INCOME,
        purpose="  Scholarship application ",
        form_details={"annualIncome": "85000"},
    )

    with collect_notices() as notices:
        result = document_service.submit_document_request(db, citizen.id, draft)

    assert result.ok
    doc = result.data
    assert doc.status == DocumentStatus.PENDING
    assert doc.purpose == "Scholarship application"
    assert doc.requester_name == "Sunita Patil"
    assert doc.form_details == {"annualIncome": "85000"}
    assert doc.attachments == []
    assert [n.message for n in notices] == ["Document request submitted successfully"]


def test_blank_purpose_is_refused(db, citizen):
    with pytest.raises(ValidationError):
        DocumentRequestCreate(document_type=DocumentType.BIRTH, purpose="   ")

    # Drafts built without validation are still checked before any insert
    draft = DocumentRequestCreate.model_construct(
        document_type=DocumentType.BIRTH, purpose="   ", attachments=[], form_details={}
    )
    with collect_notices() as notices:
        result = document_service.submit_document_request(db, citizen.id, draft)

    assert result.error.kind == ErrorKind.VALIDATION
    assert notices[0].level == NoticeLevel.ERROR
    assert db.query(DocumentRequest).count() == 0


def test_to_document_view_tolerates_malformed_joins():
    row = SimpleNamespace(
        id=uuid4(),
        user_id=uuid4(),
        status="pending",
        document_type="birth",
        purpose="Passport",
        created_at="2025-03-01T10:00:00Z",
        updated_at=None,
        attachments="not-a-list",
        form_details=None,
        verified_by=None,
        approved_by=None,
        rejection_reason=None,
        additional_notes=None,
        requester="Sunita",
        verifier={"name": 42},
        approver={"name": "Anil Kale"},
    )

    view = document_service.to_document_view(row)

    assert view.requester_name is None
    assert view.verified_by_name is None
    assert view.approved_by_name == "Anil Kale"
    assert view.attachments == []
    assert view.form_details == {}
    assert view.updated_at == view.created_at


def test_joined_name_accepts_only_structured_values():
    assert document_service.joined_name(None) is None
    assert document_service.joined_name("Sunita") is None
    assert document_service.joined_name(["Sunita"]) is None
    assert document_service.joined_name({"name": None}) is None
    assert document_service.joined_name({"name": "Sunita"}) == "Sunita"
    assert document_service.joined_name(SimpleNamespace(name="Sunita")) == "Sunita"


def test_filter_documents_combines_predicates(db, citizen):
    make_document(db, citizen, document_type="birth", purpose="School admission")
    make_document(db, citizen, document_type="income", purpose="Scholarship")
    make_document(db, citizen, document_type="income", purpose="Bank loan",
                  status=DocumentStatus.REJECTED.value, rejection_reason="Missing proof")
    docs = document_service.list_document_requests(db).data

    assert len(document_service.filter_documents(docs)) == 3
    assert len(document_service.filter_documents(docs, search="SCHOL")) == 1
    assert len(document_service.filter_documents(docs, search="sunita")) == 3
    assert len(document_service.filter_documents(docs, document_type="income")) == 2
    assert len(
        document_service.filter_documents(
            docs, document_type="income", status=DocumentStatus.PENDING
        )
    ) == 1
    assert len(document_service.filter_documents(docs, status="all", document_type="all")) == 3
    assert document_service.filter_documents(docs, search="death") == []


def test_document_type_label():
    assert document_service.document_type_label(DocumentType.BIRTH) == "Birth Certificate"
    assert document_service.document_type_label("residence") == "Residence Certificate"
