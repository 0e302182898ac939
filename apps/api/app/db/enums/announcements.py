"""Announcement enums."""

from enum import Enum


class AnnouncementCategory(str, Enum):
    """
    Conventional announcement categories.

    The column is free-form; these are the values the portal styles specially.
    """

    HEALTH = "health"
    INFRASTRUCTURE = "infrastructure"
    PUBLIC_WORKS = "public_works"
    GOVERNANCE = "governance"
    EDUCATION = "education"
    AGRICULTURE = "agriculture"
    EMERGENCY = "emergency"
    EVENT = "event"
