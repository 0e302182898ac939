"""Upload helpers: request size checks and object-key-safe filenames."""

from __future__ import annotations

import re
from os import SEEK_END
from pathlib import PurePosixPath

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

MULTIPART_OVERHEAD_BYTES = 64 * 1024
DEFAULT_FILENAME = "upload"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def content_length_exceeds_limit(
    content_length_header: str | None,
    *,
    max_total_bytes: int,
    overhead_bytes: int = MULTIPART_OVERHEAD_BYTES,
) -> bool:
    """True when Content-Length clearly exceeds what the files may add up to."""
    if not content_length_header:
        return False
    try:
        content_length = int(content_length_header)
    except (TypeError, ValueError):
        return False
    return content_length > (max_total_bytes + overhead_bytes)


async def get_upload_file_size(file: UploadFile) -> int:
    """Size of the spooled upload, without reading it into memory."""

    def _get_size() -> int:
        stream = file.file
        original_pos = stream.tell()
        try:
            stream.seek(0, SEEK_END)
            return stream.tell()
        finally:
            stream.seek(original_pos)

    return await run_in_threadpool(_get_size)


def sanitize_filename(filename: str | None) -> str:
    """Strip directories and anything outside [A-Za-z0-9._-] from a client filename."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or DEFAULT_FILENAME
