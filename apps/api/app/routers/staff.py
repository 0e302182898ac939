"""Staff management and performance endpoints (admin only)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from app.core.deps import get_db, get_session_factory, require_csrf_header, require_roles
from app.core.notices import collect_notices
from app.db.enums import ROLES_CAN_ADMINISTER
from app.routers.shared import notices_read, raise_service_error
from app.schemas.staff import (
    StaffMemberView,
    StaffPerformanceView,
    StaffRemovalResponse,
    StaffToggleRequest,
)
from app.services import staff_service

router = APIRouter(dependencies=[Depends(require_roles(ROLES_CAN_ADMINISTER))])


@router.get("", response_model=list[StaffMemberView])
def list_staff(db: Session = Depends(get_db)):
    with collect_notices() as notices:
        result = staff_service.list_staff_members(db)
    if not result.ok:
        raise_service_error(result.error, notices)
    return result.data


@router.get("/performance", response_model=list[StaffPerformanceView])
async def staff_performance(
    request: Request,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Per-staff counts from the live snapshot, or computed fresh when none is mounted."""
    view = getattr(request.app.state, "performance_view", None)
    if view is not None and view.mounted:
        await view.wait_idle()
        if view.error is None:
            return view.items
    with collect_notices() as notices:
        result = await staff_service.compute_staff_performance(session_factory)
    if not result.ok:
        raise_service_error(result.error, notices)
    return result.data


@router.post(
    "/{staff_id}/toggle",
    response_model=StaffMemberView,
    dependencies=[Depends(require_csrf_header)],
)
def toggle_staff(
    staff_id: UUID,
    data: StaffToggleRequest,
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = staff_service.toggle_staff_status(db, staff_id, data.is_active)
    if not result.ok:
        raise_service_error(result.error, notices)
    return result.data


@router.delete(
    "/{staff_id}",
    response_model=StaffRemovalResponse,
    dependencies=[Depends(require_csrf_header)],
)
def remove_staff(
    staff_id: UUID,
    user_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete the staff record and reset the profile role to citizen."""
    with collect_notices() as notices:
        result = staff_service.remove_staff_member(db, staff_id, user_id)
    if not result.ok:
        raise_service_error(result.error, notices)
    return StaffRemovalResponse(
        success=True,
        staff_deleted=result.data.staff_deleted,
        role_reset=result.data.role_reset,
        notices=notices_read(notices),
    )
