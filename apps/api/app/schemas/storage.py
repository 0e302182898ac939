"""Upload schemas."""

from pydantic import BaseModel


class UploadResponse(BaseModel):
    urls: list[str]
    failed: int = 0
