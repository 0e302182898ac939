"""Enum definitions for application constants."""

from app.db.enums.announcements import AnnouncementCategory
from app.db.enums.auth import Role
from app.db.enums.complaints import ComplaintStatus
from app.db.enums.documents import DocumentStatus, DocumentType
from app.db.enums.realtime import ChangeEventType

# Roles allowed to move a document request through the workflow
ROLES_CAN_REVIEW_DOCUMENTS = {Role.STAFF, Role.ADMIN}
# Roles allowed to manage staff and announcements
ROLES_CAN_ADMINISTER = {Role.ADMIN}

__all__ = [
    "AnnouncementCategory",
    "ChangeEventType",
    "ComplaintStatus",
    "DocumentStatus",
    "DocumentType",
    "ROLES_CAN_ADMINISTER",
    "ROLES_CAN_REVIEW_DOCUMENTS",
    "Role",
]
