from uuid import uuid4

import pytest

from app.core.notices import NoticeLevel, collect_notices
from app.db.enums import DocumentStatus, Role
from app.db.models import DocumentRequest
from app.services import document_workflow_service as workflow
from app.services.results import ErrorKind, ServiceResult
from tests.conftest import make_document, make_profile


def _reload(db, document_id) -> DocumentRequest:
    db.expire_all()
    return db.get(DocumentRequest, document_id)


def _reads_pending(db, document_id) -> ServiceResult:
    return ServiceResult.success(DocumentStatus.PENDING)


def _assert_invariants(row: DocumentRequest) -> None:
    if row.verified_by is not None:
        assert row.status in {DocumentStatus.VERIFIED.value, DocumentStatus.APPROVED.value}
    if row.approved_by is not None:
        assert row.status == DocumentStatus.APPROVED.value
    if row.rejection_reason is not None:
        assert row.status == DocumentStatus.REJECTED.value


@pytest.mark.parametrize("conditional", [True, False])
def test_verify_then_approve(db, citizen, staff_profile, conditional):
    approver = make_profile(db, role=Role.STAFF, name="Anil Kale")
    doc = make_document(db, citizen)

    with collect_notices() as notices:
        verified = workflow.verify(db, doc.id, staff_profile.id, conditional=conditional)
    assert verified.ok
    assert verified.data.status == DocumentStatus.VERIFIED
    assert verified.data.verified_by_name == "Ramesh Jadhav"
    assert notices[-1].message == "Document request verified successfully"

    approved = workflow.approve(db, doc.id, approver.id, conditional=conditional)
    assert approved.ok

    row = _reload(db, doc.id)
    assert row.status == DocumentStatus.APPROVED.value
    assert row.verified_by == staff_profile.id
    assert row.approved_by == approver.id
    _assert_invariants(row)


@pytest.mark.parametrize("start", [DocumentStatus.PENDING, DocumentStatus.VERIFIED])
def test_reject_from_open_states_clears_reviewers(db, citizen, staff_profile, start):
    verified_by = staff_profile.id if start == DocumentStatus.VERIFIED else None
    doc = make_document(db, citizen, status=start.value, verified_by=verified_by)

    result = workflow.reject(db, doc.id, staff_profile.id, "  Aadhaar copy missing ")

    assert result.ok
    row = _reload(db, doc.id)
    assert row.status == DocumentStatus.REJECTED.value
    assert row.rejection_reason == "Aadhaar copy missing"
    assert row.verified_by is None
    assert row.approved_by is None
    _assert_invariants(row)


@pytest.mark.parametrize("reason", ["", "   ", None])
def test_blank_rejection_reason_is_refused_without_write(db, citizen, staff_profile, reason):
    doc = make_document(db, citizen)

    with collect_notices() as notices:
        result = workflow.reject(db, doc.id, staff_profile.id, reason)

    assert result.error.kind == ErrorKind.VALIDATION
    assert len(notices) == 1
    assert notices[0].level == NoticeLevel.ERROR
    assert notices[0].message == "Please provide a reason for rejection"
    assert _reload(db, doc.id).status == DocumentStatus.PENDING.value


def test_missing_staff_identity_is_refused(db, citizen):
    doc = make_document(db, citizen)

    with collect_notices() as notices:
        result = workflow.verify(db, doc.id, None)

    assert result.error.kind == ErrorKind.VALIDATION
    assert notices[0].message == "Staff ID not found"
    assert _reload(db, doc.id).verified_by is None


@pytest.mark.parametrize(
    "start,action",
    [
        (DocumentStatus.PENDING, "approve"),
        (DocumentStatus.VERIFIED, "verify"),
        (DocumentStatus.APPROVED, "reject"),
        (DocumentStatus.REJECTED, "verify"),
    ],
)
def test_disallowed_transitions_do_not_write(db, citizen, staff_profile, start, action):
    kwargs = {}
    if start in (DocumentStatus.VERIFIED, DocumentStatus.APPROVED):
        kwargs["verified_by"] = staff_profile.id
    if start == DocumentStatus.APPROVED:
        kwargs["approved_by"] = staff_profile.id
    if start == DocumentStatus.REJECTED:
        kwargs["rejection_reason"] = "Duplicate"
    doc = make_document(db, citizen, status=start.value, **kwargs)

    if action == "reject":
        result = workflow.reject(db, doc.id, staff_profile.id, "Too late")
    else:
        result = getattr(workflow, action)(db, doc.id, staff_profile.id)

    assert result.error.kind == ErrorKind.INVALID_TRANSITION
    assert _reload(db, doc.id).status == start.value


def test_unknown_document_is_not_found(db, staff_profile):
    result = workflow.verify(db, uuid4(), staff_profile.id)

    assert result.error.kind == ErrorKind.NOT_FOUND


def test_conditional_update_reports_conflict_when_status_moved(db, citizen, staff_profile):
    other_staff = make_profile(db, role=Role.STAFF, name="Prakash Kadam")
    doc = make_document(db, citizen)

    # Both reviewers loaded the request while it was pending
    assert workflow.verify(db, doc.id, staff_profile.id, current_status="pending").ok

    with collect_notices() as notices:
        result = workflow.reject(
            db, doc.id, other_staff.id, "Wrong office", current_status="pending", conditional=True
        )

    assert result.error.kind == ErrorKind.CONFLICT
    assert notices[0].level == NoticeLevel.ERROR
    row = _reload(db, doc.id)
    assert row.status == DocumentStatus.VERIFIED.value
    assert row.verified_by == staff_profile.id
    assert row.rejection_reason is None


def test_unconditional_update_is_last_write_wins(db, citizen, staff_profile):
    other_staff = make_profile(db, role=Role.STAFF, name="Prakash Kadam")
    doc = make_document(db, citizen)

    assert workflow.verify(
        db, doc.id, staff_profile.id, current_status="pending", conditional=False
    ).ok
    result = workflow.reject(
        db, doc.id, other_staff.id, "Wrong office", current_status="pending", conditional=False
    )

    assert result.ok
    row = _reload(db, doc.id)
    assert row.status == DocumentStatus.REJECTED.value
    assert row.rejection_reason == "Wrong office"
    _assert_invariants(row)


def test_conditional_mode_defaults_from_settings(db, citizen, staff_profile, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "WORKFLOW_CONDITIONAL_UPDATES", False)
    other_staff = make_profile(db, role=Role.STAFF, name="Prakash Kadam")
    doc = make_document(db, citizen)
    assert workflow.verify(db, doc.id, staff_profile.id, current_status="pending").ok

    # A stale view is not a conflict when writes are last-write-wins
    result = workflow.reject(db, doc.id, other_staff.id, "Wrong office", current_status="pending")

    assert result.ok
    assert _reload(db, doc.id).status == DocumentStatus.REJECTED.value


@pytest.mark.parametrize(
    "conditional,expected_kind",
    [(True, ErrorKind.CONFLICT), (False, ErrorKind.INVALID_TRANSITION)],
)
def test_claimed_status_cannot_skip_verification(
    db, citizen, staff_profile, conditional, expected_kind
):
    doc = make_document(db, citizen)

    with collect_notices() as notices:
        result = workflow.approve(
            db, doc.id, staff_profile.id, current_status="verified", conditional=conditional
        )

    assert result.error.kind == expected_kind
    assert notices[0].level == NoticeLevel.ERROR
    row = _reload(db, doc.id)
    assert row.status == DocumentStatus.PENDING.value
    assert row.approved_by is None
    _assert_invariants(row)


@pytest.mark.parametrize(
    "conditional,expected_kind",
    [(True, ErrorKind.CONFLICT), (False, ErrorKind.INVALID_TRANSITION)],
)
def test_claimed_status_cannot_reopen_approved_request(
    db, citizen, staff_profile, conditional, expected_kind
):
    doc = make_document(
        db,
        citizen,
        status=DocumentStatus.APPROVED.value,
        verified_by=staff_profile.id,
        approved_by=staff_profile.id,
    )

    result = workflow.reject(
        db,
        doc.id,
        staff_profile.id,
        "Changed my mind",
        current_status="verified",
        conditional=conditional,
    )

    assert result.error.kind == expected_kind
    row = _reload(db, doc.id)
    assert row.status == DocumentStatus.APPROVED.value
    assert row.rejection_reason is None
    _assert_invariants(row)


@pytest.mark.parametrize("conditional", [True, False])
def test_unknown_document_with_claimed_status_is_not_found(db, staff_profile, conditional):
    result = workflow.verify(
        db, uuid4(), staff_profile.id, current_status="pending", conditional=conditional
    )

    assert result.error.kind == ErrorKind.NOT_FOUND


def test_conditional_write_lost_to_concurrent_change_is_conflict(
    db, citizen, staff_profile, monkeypatch
):
    doc = make_document(
        db, citizen, status=DocumentStatus.VERIFIED.value, verified_by=staff_profile.id
    )
    # Another reviewer verifies between the status read and the write
    monkeypatch.setattr(workflow, "_read_status", _reads_pending)

    result = workflow.verify(db, doc.id, staff_profile.id, conditional=True)

    assert result.error.kind == ErrorKind.CONFLICT


def test_conditional_write_on_deleted_row_is_not_found(db, staff_profile, monkeypatch):
    # The request is deleted between the status read and the write
    monkeypatch.setattr(workflow, "_read_status", _reads_pending)

    result = workflow.verify(db, uuid4(), staff_profile.id, conditional=True)

    assert result.error.kind == ErrorKind.NOT_FOUND


def test_transition_table():
    assert workflow.can_transition("pending", "verified")
    assert workflow.can_transition("verified", "approved")
    assert workflow.can_transition("verified", "rejected")
    assert not workflow.can_transition("pending", "approved")
    assert not workflow.can_transition("approved", "rejected")
    assert not workflow.can_transition("bogus", "verified")
    assert workflow.allowed_transitions("approved") == frozenset()
    assert workflow.allowed_transitions(DocumentStatus.PENDING) == {
        DocumentStatus.VERIFIED,
        DocumentStatus.REJECTED,
    }
