"""Realtime change feed enums."""

from enum import Enum


class ChangeEventType(str, Enum):
    """Kinds of row changes published on the change feed."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
