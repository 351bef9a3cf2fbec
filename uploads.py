import logging
import os
import random
import time
from typing import Optional

from fastapi import UploadFile

from config import Settings
from errors import InvalidInput

logger = logging.getLogger(__name__)

UPLOADS_ROUTE = "uploads"


def save_image(upload: Optional[UploadFile], settings: Settings, prefix: str) -> str:
    """Store an uploaded image and return its public URL."""
    if upload is None or not upload.filename:
        raise InvalidInput("An image file is required")
    if not (upload.content_type or "").startswith("image/"):
        raise InvalidInput("Only image files are allowed")

    content = upload.file.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        raise InvalidInput("Image is too large")

    ext = os.path.splitext(upload.filename)[1].lower()
    filename = f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
    os.makedirs(settings.uploads_dir, exist_ok=True)
    with open(os.path.join(settings.uploads_dir, filename), "wb") as fh:
        fh.write(content)

    logger.info("Stored upload %s (%d bytes)", filename, len(content))
    return settings.public_url(f"{UPLOADS_ROUTE}/{filename}")


def delete_image(url: Optional[str], settings: Settings) -> None:
    """Remove a previously stored upload; missing files are only logged."""
    if not url or f"/{UPLOADS_ROUTE}/" not in url:
        return
    path = os.path.join(settings.uploads_dir, os.path.basename(url))
    try:
        os.remove(path)
    except OSError as exc:
        logger.info("Could not delete old upload %s: %s", path, exc)
