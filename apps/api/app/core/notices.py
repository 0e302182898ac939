"""Per-request user-facing notices.

Services emit short success/error messages for the person who triggered an
operation (the portal shows them as toasts). Notices are logged and, while a
collection context is active, recorded so routers can return them.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterator

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["level"] = self.level.value
        return data


_NOTICES: ContextVar[list[Notice] | None] = ContextVar("portal_notices", default=None)


@contextmanager
def collect_notices() -> Iterator[list[Notice]]:
    """Collect notices emitted inside the block into the yielded list."""
    collected: list[Notice] = []
    token = _NOTICES.set(collected)
    try:
        yield collected
    finally:
        _NOTICES.reset(token)


def _emit(notice: Notice) -> Notice:
    collected = _NOTICES.get()
    if collected is not None:
        collected.append(notice)
    return notice


def notify_success(message: str) -> Notice:
    logger.info("notice: %s", message)
    return _emit(Notice(NoticeLevel.SUCCESS, message))


def notify_error(message: str) -> Notice:
    logger.warning("notice: %s", message)
    return _emit(Notice(NoticeLevel.ERROR, message))
