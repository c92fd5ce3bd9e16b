"""Upload checks for images stored in the database."""

import base64
import binascii
import os
from typing import Optional, Tuple

from core.config import settings
from core.errors import ValidationError

MIN_IMAGE_BYTES = 100

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
}


def _check_size(data: bytes) -> None:
    if len(data) < MIN_IMAGE_BYTES:
        raise ValidationError("Image file appears to be corrupted or too small")
    if len(data) > settings.max_image_bytes:
        limit_mb = settings.max_image_bytes // (1024 * 1024)
        raise ValidationError(f"Image size must be less than {limit_mb}MB")


def resolve_upload(data: bytes, filename: Optional[str], content_type: Optional[str]) -> str:
    """Validate a multipart upload and return the content type to store."""
    content_type = (content_type or "").strip().lower()
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")

    generic = not content_type or content_type == "application/octet-stream"
    if not generic and not content_type.startswith("image/"):
        raise ValidationError("File must be an image")
    if generic and ext and ext not in EXT_TO_CONTENT_TYPE:
        raise ValidationError("File must be an image")

    _check_size(data)

    if generic:
        content_type = EXT_TO_CONTENT_TYPE.get(ext, "image/jpeg")
    return content_type


def decode_base64_image(payload: str) -> Tuple[bytes, str]:
    """Decode a raw or data-URL base64 image into (bytes, content_type)."""
    content_type = "image/jpeg"
    if "," in payload:
        prefix, payload = payload.split(",", 1)
        if prefix.startswith("data:") and ";" in prefix:
            content_type = prefix.split(";")[0].replace("data:", "").strip() or content_type
    if not content_type.startswith("image/"):
        raise ValidationError("File must be an image")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid base64 image data")
    _check_size(data)
    return data, content_type
