import logging
import os
import uuid
from datetime import datetime
from pathlib import Path

from fastapi import UploadFile

import config
from errors import ValidationFailed

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"
CHUNK_SIZE = 64 * 1024


def _upload_dir() -> Path:
    path = Path(config.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _generate_filename(original_filename: str) -> str:
    """Generate unique filename"""
    ext = os.path.splitext(original_filename)[1].lower()
    if not ext:
        ext = ".jpg"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    unique_id = uuid.uuid4().hex[:12]
    return f"{timestamp}_{unique_id}{ext}"


async def upload_image(file: UploadFile) -> str:
    """Store an uploaded image and return the URL path it is served from."""
    if not (file.content_type or "").startswith("image/"):
        raise ValidationFailed("Only image files can be uploaded")

    if file.size is not None and file.size > config.MAX_UPLOAD_BYTES:
        raise ValidationFailed("Image is too large")

    content = bytearray()
    while chunk := await file.read(CHUNK_SIZE):
        content.extend(chunk)
        if len(content) > config.MAX_UPLOAD_BYTES:
            raise ValidationFailed("Image is too large")
    if not content:
        raise ValidationFailed("Uploaded image is empty")

    filename = _generate_filename(file.filename or "")
    (_upload_dir() / filename).write_bytes(content)
    logger.info("Stored image %s (%d bytes)", filename, len(content))
    return f"{URL_PREFIX}/{filename}"


def delete_image(image_url: str) -> None:
    # Only the file name is trusted; anything else in the reference is ignored.
    filename = image_url.rsplit("/", 1)[-1]
    if not filename:
        return
    try:
        (Path(config.UPLOAD_DIR) / filename).unlink()
    except FileNotFoundError:
        logger.warning("Image %s was already gone", filename)
    except OSError:
        logger.exception("Failed to delete image %s", filename)
