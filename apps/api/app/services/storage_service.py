"""Object storage for document attachments.

Uploads go to an S3-compatible bucket under "<path>/<uuid>-<filename>" and
resolve to a public URL. Multiple files upload concurrently; a file that
fails is logged and left out of the result rather than failing the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote
from uuid import uuid4

import anyio
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.notices import notify_error
from app.services.storage_client import get_s3_client
from app.utils.file_upload import sanitize_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadItem:
    filename: str
    data: bytes
    content_type: str | None = None


def build_object_key(filename: str, path: str | None = None) -> str:
    """Unique key for an upload; the random prefix avoids collisions."""
    key = f"{uuid4()}-{sanitize_filename(filename)}"
    prefix = (path or "").strip("/")
    return f"{prefix}/{key}" if prefix else key


def get_public_url(bucket: str, key: str) -> str:
    quoted = quote(key)
    if settings.STORAGE_PUBLIC_BASE_URL:
        return f"{settings.STORAGE_PUBLIC_BASE_URL.rstrip('/')}/{bucket}/{quoted}"
    if settings.S3_ENDPOINT_URL:
        return f"{settings.S3_ENDPOINT_URL.rstrip('/')}/{bucket}/{quoted}"
    return f"https://{bucket}.s3.amazonaws.com/{quoted}"


def key_from_public_url(url: str, bucket: str) -> str | None:
    """Inverse of get_public_url for the bucket; None when the URL is foreign."""
    marker = f"/{bucket}/"
    if marker in url:
        return url.split(marker, 1)[1]
    host_prefix = f"https://{bucket}.s3.amazonaws.com/"
    if url.startswith(host_prefix):
        return url[len(host_prefix):]
    return None


def upload_file(
    item: UploadItem,
    *,
    bucket: str | None = None,
    path: str | None = None,
    client: BaseClient | None = None,
) -> str | None:
    """Upload one file. Returns its public URL, or None on failure."""
    bucket = bucket or settings.DOCUMENTS_BUCKET
    key = build_object_key(item.filename, path)
    extra = {"ContentType": item.content_type} if item.content_type else {}
    try:
        s3 = client or get_s3_client()
        s3.put_object(Bucket=bucket, Key=key, Body=item.data, **extra)
    except (BotoCoreError, ClientError):
        logger.exception("Error uploading %s to bucket %s", item.filename, bucket)
        notify_error(f"Failed to upload {item.filename}")
        return None
    logger.info("Uploaded %s (%d bytes) to %s/%s", item.filename, len(item.data), bucket, key)
    return get_public_url(bucket, key)


async def upload_multiple_files(
    items: list[UploadItem],
    *,
    bucket: str | None = None,
    path: str | None = None,
    client: BaseClient | None = None,
) -> list[str]:
    """Upload files concurrently. URLs come back in input order, failures omitted."""
    if not items:
        return []

    try:
        s3 = client or get_s3_client()
    except (BotoCoreError, ClientError):
        logger.exception("Error creating storage client for %d uploads", len(items))
        notify_error("Failed to upload files")
        return []

    urls: list[str | None] = [None] * len(items)

    async def _upload(index: int, item: UploadItem) -> None:
        urls[index] = await anyio.to_thread.run_sync(
            lambda: upload_file(item, bucket=bucket, path=path, client=s3)
        )

    async with anyio.create_task_group() as tg:
        for index, item in enumerate(items):
            tg.start_soon(_upload, index, item)

    return [url for url in urls if url]


def delete_file(
    key: str, *, bucket: str | None = None, client: BaseClient | None = None
) -> bool:
    bucket = bucket or settings.DOCUMENTS_BUCKET
    try:
        s3 = client or get_s3_client()
        s3.delete_object(Bucket=bucket, Key=key)
    except (BotoCoreError, ClientError):
        logger.exception("Error deleting %s from bucket %s", key, bucket)
        notify_error("Failed to delete file")
        return False
    return True
