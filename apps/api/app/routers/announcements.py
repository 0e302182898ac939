"""Announcement board endpoints. Reading is public; writing is admin-only."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_csrf_header, require_roles
from app.core.notices import collect_notices
from app.db.enums import ROLES_CAN_ADMINISTER
from app.routers.shared import notices_read, raise_service_error
from app.schemas.announcement import AnnouncementView, AnnouncementWrite
from app.schemas.auth import UserSession
from app.schemas.notice import MutationResponse
from app.services import announcement_service

router = APIRouter()


@router.get("", response_model=list[AnnouncementView])
def list_announcements(
    category: str | None = None,
    q: str | None = None,
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = announcement_service.list_announcements(db)
    if not result.ok:
        raise_service_error(result.error, notices)
    items = announcement_service.filter_by_category(result.data, category)
    return announcement_service.search_announcements(items, q)


@router.get("/categories", response_model=list[str])
def list_announcement_categories(db: Session = Depends(get_db)):
    """Categories that currently have announcements."""
    with collect_notices() as notices:
        result = announcement_service.list_announcements(db)
    if not result.ok:
        raise_service_error(result.error, notices)
    return announcement_service.list_categories(result.data)


@router.get("/{announcement_id}", response_model=AnnouncementView)
def get_announcement(announcement_id: UUID, db: Session = Depends(get_db)):
    with collect_notices() as notices:
        result = announcement_service.get_announcement(db, announcement_id)
    if not result.ok:
        raise_service_error(result.error, notices)
    if result.data is None:
        raise HTTPException(status_code=404, detail="Announcement not found")
    return result.data


@router.post(
    "",
    response_model=AnnouncementView,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_announcement(
    data: AnnouncementWrite,
    session: UserSession = Depends(require_roles(ROLES_CAN_ADMINISTER)),
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = announcement_service.create_announcement(db, data, session.user_id)
    if not result.ok:
        raise_service_error(result.error, notices)
    return result.data


@router.patch(
    "/{announcement_id}",
    response_model=AnnouncementView,
    dependencies=[Depends(require_csrf_header)],
)
def update_announcement(
    announcement_id: UUID,
    data: AnnouncementWrite,
    session: UserSession = Depends(require_roles(ROLES_CAN_ADMINISTER)),
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = announcement_service.update_announcement(db, announcement_id, data)
    if not result.ok:
        raise_service_error(result.error, notices)
    return result.data


@router.delete(
    "/{announcement_id}",
    response_model=MutationResponse,
    dependencies=[Depends(require_csrf_header)],
)
def delete_announcement(
    announcement_id: UUID,
    session: UserSession = Depends(require_roles(ROLES_CAN_ADMINISTER)),
    db: Session = Depends(get_db),
):
    with collect_notices() as notices:
        result = announcement_service.delete_announcement(db, announcement_id)
    if not result.ok:
        raise_service_error(result.error, notices)
    return MutationResponse(success=True, notices=notices_read(notices))
