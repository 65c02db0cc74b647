"""
Upload Intake

Validates an uploaded file and stages it on disk under a random name.

Checks:
- a file was actually sent
- extension is in the allow-list (.jpg, .jpeg, .png)
- declared content type is image/*
- body does not exceed the upload size limit (checked while streaming)
"""

import asyncio
import hashlib
import logging
import os
import secrets
import time
from pathlib import Path
from typing import Optional, Protocol

from .config import CDNConfig
from .errors import ValidationFailure
from .models import StagedAsset

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class UploadLike(Protocol):
    """The subset of ``fastapi.UploadFile`` intake relies on."""
    filename: Optional[str]
    content_type: Optional[str]

    async def read(self, size: int = -1) -> bytes: ...


def secure_filename() -> str:
    """``<epoch-ms>-<16 hex>``; never contains client-supplied text."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}"


def validate_upload_metadata(
    filename: Optional[str],
    content_type: Optional[str],
    config: CDNConfig,
) -> None:
    """
    Reject uploads by name/type before reading the body.

    Raises:
        ValidationFailure
    """
    if not filename:
        raise ValidationFailure("No file uploaded.")

    ext = os.path.splitext(filename)[1].lower()
    if ext not in config.allowed_extensions or not (content_type or "").startswith("image/"):
        raise ValidationFailure("Invalid file type")


async def stage_upload(upload: Optional[UploadLike], config: CDNConfig) -> StagedAsset:
    """
    Validate and stage an upload.

    Returns:
        StagedAsset owned by the caller, who must delete it with
        ``discard_staged`` when done.

    Raises:
        ValidationFailure: missing, wrong-type or oversized file. Nothing is
            left in the staging directory in that case.
    """
    if upload is None:
        raise ValidationFailure("No file uploaded.")
    validate_upload_metadata(upload.filename, upload.content_type, config)

    staging_dir = Path(config.upload_dir)
    staging_dir.mkdir(parents=True, exist_ok=True)

    name = secure_filename()
    path = (staging_dir / name).resolve()
    digest = hashlib.sha256()
    size = 0

    f = await asyncio.to_thread(open, path, "wb")
    try:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > config.max_upload_bytes:
                raise ValidationFailure(
                    f"File too large (max {config.max_upload_bytes // (1024 * 1024)}MB)"
                )
            digest.update(chunk)
            await asyncio.to_thread(f.write, chunk)
    except BaseException:
        f.close()
        path.unlink(missing_ok=True)
        raise
    else:
        f.close()

    if size == 0:
        path.unlink(missing_ok=True)
        raise ValidationFailure("Uploaded file is empty.")

    logger.info(f"[Intake] Staged {upload.filename!r} as {name} ({size} bytes)")
    return StagedAsset(
        filename=name,
        path=path,
        size_bytes=size,
        content_type=upload.content_type or "",
        original_filename=upload.filename or "",
        content_digest=digest.hexdigest(),
    )


async def discard_staged(asset: StagedAsset) -> None:
    """Delete a staged file. Failures are logged, not raised."""
    try:
        await asyncio.to_thread(asset.path.unlink, missing_ok=True)
        logger.debug(f"[Intake] Removed staged file: {asset.filename}")
    except OSError as e:
        logger.error(f"[Intake] Failed to delete staged file {asset.path}: {e}")
