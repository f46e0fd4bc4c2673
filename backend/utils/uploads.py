"""
Local-disk storage for vendor logos.

Files are written to `<UPLOAD_DIR>/logos/logo-<ms timestamp>-<random><ext>`
and served by the /uploads static mount.
"""
import logging
import os
import secrets
import time

from fastapi import UploadFile

from config import settings
from domain.constants import LOGO_CONTENT_PREFIX, LOGO_URL_PREFIX
from domain.errors import ValidationError

logger = logging.getLogger(__name__)

# Raster formats only, no SVG
_ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
_ALLOWED_CONTENT_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/gif", "image/webp"}


def _extension(filename: str | None, content_type: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in _ALLOWED_EXTENSIONS:
        return ext
    subtype = content_type.split("/", 1)[-1].split("+", 1)[0]
    guessed = f".{subtype}" if subtype else ""
    return guessed if guessed in _ALLOWED_EXTENSIONS else ".png"


async def save_logo(file: UploadFile) -> str:
    """
    Validate and persist an uploaded logo.

    Returns the public URL path (e.g. /uploads/logos/logo-1700000000000-123456789.png).
    Raises ValidationError for non-images, vector formats and files over
    MAX_LOGO_BYTES.
    """
    content_type = file.content_type or ""
    if not content_type.startswith(LOGO_CONTENT_PREFIX):
        raise ValidationError("Only image files are allowed", field="logo")
    if content_type.split(";", 1)[0].strip().lower() not in _ALLOWED_CONTENT_TYPES:
        raise ValidationError("Logo must be a PNG, JPEG, GIF or WebP image", field="logo")

    content = await file.read(settings.max_logo_bytes + 1)
    if len(content) > settings.max_logo_bytes:
        limit_mb = settings.max_logo_bytes // (1024 * 1024)
        raise ValidationError(f"File too large. Maximum size is {limit_mb}MB", field="logo")
    if not content:
        raise ValidationError("Uploaded file is empty", field="logo")

    os.makedirs(settings.logo_dir, exist_ok=True)
    filename = (
        f"logo-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
        f"{_extension(file.filename, content_type)}"
    )
    path = os.path.join(settings.logo_dir, filename)
    with open(path, "wb") as fh:
        fh.write(content)

    logger.info(f"Stored logo {filename} ({len(content)} bytes)")
    return f"{LOGO_URL_PREFIX}/{filename}"


def delete_logo(logo_url: str | None) -> bool:
    """Remove a previously stored logo; missing files are ignored."""
    if not logo_url or not logo_url.startswith(LOGO_URL_PREFIX + "/"):
        return False
    path = os.path.join(settings.logo_dir, os.path.basename(logo_url))
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not delete old logo {path}: {e}")
        return False
