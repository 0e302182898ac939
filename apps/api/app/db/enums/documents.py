"""Document request enums."""

from enum import Enum


class DocumentType(str, Enum):
    """Certificates a citizen can request."""

    BIRTH = "birth"
    DEATH = "death"
    MARRIAGE = "marriage"
    INCOME = "income"
    RESIDENCE = "residence"
    OTHER = "other"


class DocumentStatus(str, Enum):
    """
    Document request lifecycle.

    pending -> verified -> approved
    pending | verified -> rejected
    APPROVED and REJECTED are terminal.
    """

    PENDING = "pending"
    VERIFIED = "verified"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.APPROVED, DocumentStatus.REJECTED)
