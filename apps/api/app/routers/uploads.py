"""Attachment upload endpoint."""

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from app.core.config import settings
from app.core.deps import get_current_session, require_csrf_header
from app.core.notices import collect_notices
from app.schemas.auth import UserSession
from app.schemas.storage import UploadResponse
from app.services import storage_service
from app.utils.file_upload import content_length_exceeds_limit, get_upload_file_size

router = APIRouter(dependencies=[Depends(require_csrf_header)])

MAX_FILES_PER_REQUEST = 10


@router.post("", response_model=UploadResponse)
async def upload_attachments(
    request: Request,
    files: list[UploadFile] = File(default=[]),
    session: UserSession = Depends(get_current_session),
):
    """Upload supporting documents; returns public URLs in upload order."""
    if len(files) > MAX_FILES_PER_REQUEST:
        raise HTTPException(status_code=422, detail=f"At most {MAX_FILES_PER_REQUEST} files")
    if content_length_exceeds_limit(
        request.headers.get("content-length"),
        max_total_bytes=settings.MAX_UPLOAD_SIZE_BYTES * max(len(files), 1),
    ):
        raise HTTPException(status_code=413, detail="Upload too large")

    items: list[storage_service.UploadItem] = []
    for upload in files:
        if await get_upload_file_size(upload) > settings.MAX_UPLOAD_SIZE_BYTES:
            raise HTTPException(status_code=413, detail=f"{upload.filename} is too large")
        items.append(
            storage_service.UploadItem(
                filename=upload.filename or "upload",
                data=await upload.read(),
                content_type=upload.content_type,
            )
        )

    with collect_notices():
        urls = await storage_service.upload_multiple_files(items, path=str(session.user_id))
    return UploadResponse(urls=urls, failed=len(items) - len(urls))
