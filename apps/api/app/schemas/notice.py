"""Notice and generic mutation response schemas."""

from pydantic import BaseModel

from app.core.notices import Notice


class NoticeRead(BaseModel):
    level: str
    message: str

    @classmethod
    def from_notice(cls, notice: Notice) -> "NoticeRead":
        return cls(level=notice.level.value, message=notice.message)


class MutationResponse(BaseModel):
    """Acknowledgement for mutations that return no entity."""
    success: bool
    notices: list[NoticeRead] = []
