"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Portal roles with increasing privilege levels.

    - CITIZEN: submits document requests, reads announcements
    - STAFF: verifies, approves and rejects document requests
    - ADMIN: manages staff and announcements, views performance metrics
    """

    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
