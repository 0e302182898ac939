from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.exc import OperationalError

from app.core.notices import collect_notices
from app.db.enums import ComplaintStatus, DocumentStatus, Role
from app.db.models import Complaint, Profile, StaffMember
from app.services import staff_service
from app.services.results import ErrorKind
from tests.conftest import make_document, make_profile, make_staff


def _complaint(db, citizen, assignee, status: ComplaintStatus) -> None:
    db.add(
        Complaint(
            user_id=citizen.id,
            title="Street light not working",
            status=status.value,
            assigned_to=assignee.id,
        )
    )
    db.commit()


async def test_performance_counts_per_staff(db, session_factory, citizen):
    s1 = make_profile(db, role=Role.STAFF, name="Ramesh Jadhav")
    s2 = make_profile(db, role=Role.STAFF, name="Savita Mane")
    make_staff(db, s1, joined_at=datetime(2023, 6, 1, tzinfo=timezone.utc))
    make_staff(db, s2, joined_at=datetime(2024, 2, 1, tzinfo=timezone.utc))

    make_document(db, citizen, status=DocumentStatus.VERIFIED.value, verified_by=s1.id)
    for _ in range(2):
        make_document(
            db,
            citizen,
            status=DocumentStatus.APPROVED.value,
            verified_by=s1.id,
            approved_by=s1.id,
        )
    _complaint(db, citizen, s1, ComplaintStatus.RESOLVED)
    _complaint(db, citizen, s1, ComplaintStatus.OPEN)

    result = await staff_service.compute_staff_performance(session_factory)

    assert result.ok
    first, second = result.data
    assert first.staff_id == s1.id
    assert first.staff_name == "Ramesh Jadhav"
    assert (first.complaints_resolved, first.documents_reviewed, first.documents_approved) == (1, 3, 2)
    assert first.last_active == datetime(2023, 6, 1, tzinfo=timezone.utc)
    assert second.staff_id == s2.id
    assert (second.complaints_resolved, second.documents_reviewed, second.documents_approved) == (0, 0, 0)


async def test_performance_uses_unknown_for_missing_name(db, session_factory):
    nameless = make_profile(db, role=Role.STAFF, name=None)
    make_staff(db, nameless)

    result = await staff_service.compute_staff_performance(session_factory)

    assert result.data[0].staff_name == "Unknown"


async def test_performance_with_no_staff_is_empty(session_factory):
    result = await staff_service.compute_staff_performance(session_factory)

    assert result.ok
    assert result.data == []


async def test_any_metric_failure_aborts_computation(db, session_factory):
    for name in ("Ramesh Jadhav", "Savita Mane"):
        make_staff(db, make_profile(db, role=Role.STAFF, name=name))

    opened = []

    def flaky_factory():
        opened.append(1)
        # First session lists staff; every metrics session fails
        if len(opened) > 1:
            raise OperationalError("SELECT count(*)", {}, Exception("connection lost"))
        return session_factory()

    with collect_notices() as notices:
        result = await staff_service.compute_staff_performance(flaky_factory)

    assert not result.ok
    assert result.data is None
    assert result.error.kind == ErrorKind.STORE
    assert notices[-1].message == "Failed to load staff performance"


def test_list_staff_members(db, staff_profile):
    result = staff_service.list_staff_members(db)

    assert result.ok
    (member,) = result.data
    assert member.user_id == staff_profile.id
    assert member.name == "Ramesh Jadhav"
    assert member.is_active is True


def test_toggle_staff_status_flips_displayed_state(db, staff_profile):
    member = db.query(StaffMember).filter_by(user_id=staff_profile.id).one()

    with collect_notices() as notices:
        result = staff_service.toggle_staff_status(db, member.id, True)

    assert result.ok
    assert result.data.is_active is False
    assert notices[0].message == "Staff member deactivated successfully"

    assert staff_service.toggle_staff_status(db, member.id, False).data.is_active is True


def test_toggle_unknown_staff_is_not_found(db):
    result = staff_service.toggle_staff_status(db, uuid4(), True)

    assert result.error.kind == ErrorKind.NOT_FOUND


def test_toggle_keeps_write_when_reload_fails(db, staff_profile, monkeypatch):
    member = db.query(StaffMember).filter_by(user_id=staff_profile.id).one()
    member_id = member.id
    real_execute = db.execute
    calls = []

    def flaky_execute(statement, *args, **kwargs):
        calls.append(statement)
        if len(calls) > 1:
            raise OperationalError("SELECT staff", {}, Exception("connection lost"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", flaky_execute)
    result = staff_service.toggle_staff_status(db, member_id, True)
    monkeypatch.undo()

    assert result.ok
    assert result.data is None
    db.expire_all()
    assert db.get(StaffMember, member_id).is_active is False


def test_remove_staff_member_deletes_and_resets_role(db, staff_profile):
    member = db.query(StaffMember).filter_by(user_id=staff_profile.id).one()
    member_id = member.id

    result = staff_service.remove_staff_member(db, member_id, staff_profile.id)

    assert result.ok
    assert result.data.staff_deleted and result.data.role_reset
    db.expire_all()
    assert db.get(StaffMember, member_id) is None
    assert db.get(Profile, staff_profile.id).role == Role.CITIZEN.value


def test_remove_staff_member_reports_delete_step(db, staff_profile, citizen):
    member = db.query(StaffMember).filter_by(user_id=staff_profile.id).one()

    # Mismatched profile: nothing is deleted
    result = staff_service.remove_staff_member(db, member.id, citizen.id)

    assert result.error.step == staff_service.STEP_DELETE_STAFF
    db.expire_all()
    assert db.get(StaffMember, member.id) is not None
    assert db.get(Profile, staff_profile.id).role == Role.STAFF.value


def test_remove_staff_member_rolls_back_when_role_reset_fails(db):
    orphan_user_id = uuid4()
    member = StaffMember(id=uuid4(), user_id=orphan_user_id, designation="Clerk")
    db.add(member)
    db.commit()

    with collect_notices() as notices:
        result = staff_service.remove_staff_member(db, member.id, orphan_user_id)

    assert not result.ok
    assert result.error.step == staff_service.STEP_RESET_ROLE
    assert notices[0].message == "Failed to remove staff member"
    db.expire_all()
    assert db.get(StaffMember, member.id) is not None
