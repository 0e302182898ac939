"""Staff management and staff performance metrics.

Performance is derived on every fetch rather than stored: for each staff
member, resolved complaints assigned to them plus documents they verified
and approved. The per-staff counts run concurrently, each on its own
session in a worker thread, and any failure aborts the whole computation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

import anyio
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, sessionmaker

from app.core.notices import notify_error, notify_success
from app.db.enums import ComplaintStatus, Role
from app.db.models import Complaint, DocumentRequest, Profile, StaffMember
from app.db.session import SessionLocal
from app.schemas.staff import StaffMemberView, StaffPerformanceView
from app.services.document_service import joined_name
from app.services.results import ErrorKind, ServiceError, ServiceResult
from app.utils.datetime_parsing import parse_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_STAFF_NAME = "Unknown"

STEP_DELETE_STAFF = "delete_staff"
STEP_RESET_ROLE = "reset_role"


@dataclass(frozen=True)
class _StaffRef:
    user_id: UUID
    name: str
    joined_at: datetime


@dataclass
class StaffRemoval:
    staff_deleted: bool = False
    role_reset: bool = False


# =============================================================================
# Listing and management
# =============================================================================


def to_staff_member_view(row: StaffMember) -> StaffMemberView:
    return StaffMemberView(
        id=row.id,
        user_id=row.user_id,
        name=joined_name(row.profile) or UNKNOWN_STAFF_NAME,
        designation=row.designation,
        is_active=bool(row.is_active),
        joined_at=parse_timestamp(row.joined_at),
    )


def list_staff_members(db: Session) -> ServiceResult[list[StaffMemberView]]:
    query = (
        select(StaffMember)
        .options(joinedload(StaffMember.profile))
        .order_by(StaffMember.joined_at)
    )
    try:
        rows = db.execute(query).scalars().all()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error fetching staff members")
        notify_error("Failed to load staff members")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to load staff members")
    return ServiceResult.success([to_staff_member_view(row) for row in rows])


def toggle_staff_status(
    db: Session, staff_id: UUID, is_active: bool
) -> ServiceResult[StaffMemberView]:
    """Flip a staff member's active flag. is_active is the currently displayed state."""
    new_state = not is_active
    try:
        result = db.execute(
            update(StaffMember)
            .where(StaffMember.id == staff_id)
            .values(is_active=new_state)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            notify_error("Staff member not found")
            return ServiceResult.failure(ErrorKind.NOT_FOUND, f"Staff member {staff_id} not found")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating staff status for %s", staff_id)
        notify_error("Failed to update staff status")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to update staff status")

    notify_success(f"Staff member {'activated' if new_state else 'deactivated'} successfully")
    # The write is acknowledged even if the follow-up read fails
    try:
        row = db.execute(
            select(StaffMember)
            .options(joinedload(StaffMember.profile))
            .where(StaffMember.id == staff_id)
        ).scalar_one_or_none()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error reloading staff member %s after status change", staff_id)
        return ServiceResult.success(None)
    return ServiceResult.success(to_staff_member_view(row) if row else None)


def remove_staff_member(
    db: Session, staff_id: UUID, user_id: UUID
) -> ServiceResult[StaffRemoval]:
    """
    Remove a staff record and demote the profile back to citizen.

    Both steps run in one transaction: if either fails nothing is kept, and
    the error names the step that failed.
    """
    step = STEP_DELETE_STAFF
    try:
        deleted = db.execute(
            delete(StaffMember)
            .where(StaffMember.id == staff_id, StaffMember.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        if deleted.rowcount == 0:
            db.rollback()
            notify_error("Failed to remove staff member")
            return ServiceResult.failure(
                ErrorKind.NOT_FOUND,
                f"Staff member {staff_id} not found for user {user_id}",
                step=step,
            )

        step = STEP_RESET_ROLE
        reset = db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(role=Role.CITIZEN.value)
            .execution_options(synchronize_session=False)
        )
        if reset.rowcount == 0:
            db.rollback()
            notify_error("Failed to remove staff member")
            return ServiceResult.failure(
                ErrorKind.NOT_FOUND, f"Profile {user_id} not found", step=step
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error removing staff member %s at step %s", staff_id, step)
        notify_error("Failed to remove staff member")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to remove staff member", step=step)

    logger.info("Removed staff member %s (profile %s reset to citizen)", staff_id, user_id)
    notify_success("Staff member removed successfully")
    return ServiceResult.success(StaffRemoval(staff_deleted=True, role_reset=True))


# =============================================================================
# Performance metrics
# =============================================================================


def _load_staff(session_factory: sessionmaker) -> list[_StaffRef]:
    with session_factory() as db:
        rows = db.execute(
            select(StaffMember).options(joinedload(StaffMember.profile)).order_by(StaffMember.joined_at)
        ).scalars().all()
        return [
            _StaffRef(
                user_id=row.user_id,
                name=joined_name(row.profile) or UNKNOWN_STAFF_NAME,
                joined_at=parse_timestamp(row.joined_at),
            )
            for row in rows
        ]


def _count(db: Session, model, *criteria) -> int:
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar_one()


def _staff_metrics(session_factory: sessionmaker, staff: _StaffRef) -> StaffPerformanceView:
    with session_factory() as db:
        resolved = _count(
            db,
            Complaint,
            Complaint.assigned_to == staff.user_id,
            Complaint.status == ComplaintStatus.RESOLVED.value,
        )
        reviewed = _count(db, DocumentRequest, DocumentRequest.verified_by == staff.user_id)
        approved = _count(db, DocumentRequest, DocumentRequest.approved_by == staff.user_id)
    return StaffPerformanceView(
        staff_id=staff.user_id,
        staff_name=staff.name,
        complaints_resolved=resolved,
        documents_reviewed=reviewed,
        documents_approved=approved,
        # Activity is not tracked; the join date stands in
        last_active=staff.joined_at,
    )


async def compute_staff_performance(
    session_factory: sessionmaker = SessionLocal,
) -> ServiceResult[list[StaffPerformanceView]]:
    """Compute metrics for every staff member, in staff list order."""
    try:
        staff = await anyio.to_thread.run_sync(_load_staff, session_factory)
    except SQLAlchemyError:
        logger.exception("Error fetching staff for performance metrics")
        notify_error("Failed to load staff performance")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to load staff")

    results: list[StaffPerformanceView | None] = [None] * len(staff)
    failures: list[ServiceError] = []

    async with anyio.create_task_group() as tg:

        async def fill(index: int, ref: _StaffRef) -> None:
            try:
                results[index] = await anyio.to_thread.run_sync(_staff_metrics, session_factory, ref)
            except SQLAlchemyError:
                logger.exception("Error computing metrics for staff %s", ref.user_id)
                failures.append(
                    ServiceError(ErrorKind.STORE, f"Failed to compute metrics for {ref.user_id}")
                )
                tg.cancel_scope.cancel()

        for index, ref in enumerate(staff):
            tg.start_soon(fill, index, ref)

    if failures:
        notify_error("Failed to load staff performance")
        return ServiceResult(error=failures[0])
    return ServiceResult.success([item for item in results if item is not None])
