"""SQLAlchemy ORM models."""

from app.db.models.announcements import Announcement
from app.db.models.complaints import Complaint
from app.db.models.documents import DocumentRequest
from app.db.models.profiles import Profile, StaffMember

__all__ = [
    "Announcement",
    "Complaint",
    "DocumentRequest",
    "Profile",
    "StaffMember",
]
