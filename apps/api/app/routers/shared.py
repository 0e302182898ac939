"""Helpers shared by the portal routers."""

from typing import NoReturn, Sequence

from fastapi import HTTPException

from app.core.notices import Notice
from app.schemas.notice import NoticeRead
from app.services.results import ErrorKind, ServiceError

ERROR_STATUS_CODES = {
    ErrorKind.STORE: 500,
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.CONFLICT: 409,
}


def notices_read(notices: Sequence[Notice]) -> list[NoticeRead]:
    return [NoticeRead.from_notice(n) for n in notices]


def raise_service_error(error: ServiceError, notices: Sequence[Notice] = ()) -> NoReturn:
    """Turn a service failure into an HTTP error that still carries the notices."""
    detail = {
        "kind": error.kind.value,
        "message": error.message,
        "notices": [n.to_dict() for n in notices],
    }
    if error.step:
        detail["step"] = error.step
    raise HTTPException(status_code=ERROR_STATUS_CODES.get(error.kind, 500), detail=detail)
