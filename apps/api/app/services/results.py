"""Result/error pairs returned by the data-access services.

Services never raise for store failures: they roll back, log, emit a
notice, and hand back a ServiceResult carrying a tagged ServiceError.
Routers decide how to surface it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    STORE = "store"  # transport / constraint / permission failure
    VALIDATION = "validation"  # refused before any mutation
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"  # workflow precondition not met
    CONFLICT = "conflict"  # conditional update matched no row


class ServiceError(Exception):
    """Tagged failure carried inside a ServiceResult."""

    def __init__(self, kind: ErrorKind, message: str, *, step: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        # For multi-step operations: which step failed
        self.step = step

    def __repr__(self) -> str:
        return f"ServiceError({self.kind.value!r}, {self.message!r})"


@dataclass
class ServiceResult(Generic[T]):
    data: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T | None = None) -> "ServiceResult[T]":
        return cls(data=data, error=None)

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str, *, step: str | None = None
    ) -> "ServiceResult[T]":
        return cls(data=None, error=ServiceError(kind, message, step=step))
