"""Announcement CRUD plus the pure helpers used by the board and detail pages."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.notices import notify_error, notify_success
from app.db.models import Announcement
from app.schemas.announcement import AnnouncementView, AnnouncementWrite
from app.services.results import ErrorKind, ServiceResult
from app.utils.datetime_parsing import parse_timestamp

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 120


def announcement_link(announcement_id: UUID) -> str:
    return f"/announcements/{announcement_id}"


def to_announcement_view(row: Announcement) -> AnnouncementView:
    return AnnouncementView(
        id=row.id,
        title=row.title,
        content=row.content,
        created_at=parse_timestamp(row.created_at),
        category=row.category,
        important=bool(row.important),
        link=announcement_link(row.id),
    )


def list_announcements(db: Session) -> ServiceResult[list[AnnouncementView]]:
    """All announcements, newest first."""
    query = select(Announcement).order_by(Announcement.created_at.desc())
    try:
        rows = db.execute(query).scalars().all()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error fetching announcements")
        notify_error("Failed to load announcements")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to load announcements")
    return ServiceResult.success([to_announcement_view(row) for row in rows])


def get_announcement(db: Session, announcement_id: UUID) -> ServiceResult[AnnouncementView]:
    try:
        row = db.get(Announcement, announcement_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error fetching announcement %s", announcement_id)
        notify_error("Failed to load announcement")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to load announcement")
    return ServiceResult.success(to_announcement_view(row) if row else None)


def create_announcement(
    db: Session, data: AnnouncementWrite, created_by: UUID | None = None
) -> ServiceResult[AnnouncementView]:
    row = Announcement(
        title=data.title.strip(),
        content=data.content,
        category=data.category,
        important=data.important,
        created_by=created_by,
    )
    try:
        db.add(row)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating announcement")
        notify_error("Failed to create announcement")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to create announcement")
    notify_success("Announcement created successfully")
    return ServiceResult.success(to_announcement_view(row))


def update_announcement(
    db: Session, announcement_id: UUID, data: AnnouncementWrite
) -> ServiceResult[AnnouncementView]:
    try:
        row = db.get(Announcement, announcement_id)
        if row is None:
            notify_error("Announcement not found")
            return ServiceResult.failure(
                ErrorKind.NOT_FOUND, f"Announcement {announcement_id} not found"
            )
        row.title = data.title.strip()
        row.content = data.content
        row.category = data.category
        row.important = data.important
        row.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(row)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating announcement %s", announcement_id)
        notify_error("Failed to update announcement")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to update announcement")
    notify_success("Announcement updated successfully")
    return ServiceResult.success(to_announcement_view(row))


def delete_announcement(db: Session, announcement_id: UUID) -> ServiceResult[bool]:
    try:
        result = db.execute(
            delete(Announcement)
            .where(Announcement.id == announcement_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            notify_error("Announcement not found")
            return ServiceResult.failure(
                ErrorKind.NOT_FOUND, f"Announcement {announcement_id} not found"
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error deleting announcement %s", announcement_id)
        notify_error("Failed to delete announcement")
        return ServiceResult.failure(ErrorKind.STORE, "Failed to delete announcement")
    notify_success("Announcement deleted successfully")
    return ServiceResult.success(True)


# -----------------------------------------------------------------------------
# Pure helpers
# -----------------------------------------------------------------------------


def filter_by_category(
    announcements: Iterable[AnnouncementView], category: str | None
) -> list[AnnouncementView]:
    if not category or category == "all":
        return list(announcements)
    return [item for item in announcements if item.category == category]


def search_announcements(
    announcements: Iterable[AnnouncementView], query: str | None
) -> list[AnnouncementView]:
    """Case-insensitive match on title or content."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(announcements)
    return [
        item
        for item in announcements
        if needle in item.title.lower() or needle in item.content.lower()
    ]


def list_categories(announcements: Iterable[AnnouncementView]) -> list[str]:
    """Distinct categories in first-seen order."""
    seen: dict[str, None] = {}
    for item in announcements:
        seen.setdefault(item.category, None)
    return list(seen)


def preview_content(content: str, limit: int = PREVIEW_LENGTH) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def split_paragraphs(content: str) -> list[str]:
    return [part for part in content.split("\n\n") if part.strip()]


def category_label(category: str) -> str:
    """"public_works" -> "public works"."""
    return category.replace("_", " ")
