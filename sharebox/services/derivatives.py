"""Image derivatives: upload-time thumbnails and request-time previews.

Both are always JPEG-encoded. A thumbnail is named ``thumb_<stored_name>``
and so keeps the original's extension (``thumb_abc.png`` holds JPEG bytes);
it is served with an explicit ``image/jpeg`` media type, never by suffix.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps

from sharebox import storage
from sharebox.config import (
    PREVIEW_JPEG_QUALITY,
    PREVIEW_MAX_DIMENSION,
    THUMBNAIL_JPEG_QUALITY,
    THUMBNAIL_SIZE,
)

logger = logging.getLogger("sharebox.derivatives")

VECTOR_TYPES = {"image/svg+xml"}


def is_raster_image(content_type: str) -> bool:
    mime = (content_type or "").lower()
    return mime.startswith("image/") and mime not in VECTOR_TYPES


def _encode_jpeg(source: Path, bound: int, quality: int, target) -> None:
    with Image.open(source) as img:
        img = ImageOps.exif_transpose(img)
        img.thumbnail((bound, bound))
        if img.mode != "RGB":
            img = img.convert("RGB")
        img.save(target, format="JPEG", quality=quality)


def generate_thumbnail(stored_name: str, content_type: str) -> Optional[Path]:
    """Write ``thumbnails/thumb_<stored_name>``. Best effort: failures are logged, never raised."""
    if not is_raster_image(content_type):
        return None
    try:
        target = storage.thumbnail_path(stored_name)
        target.parent.mkdir(parents=True, exist_ok=True)
        _encode_jpeg(storage.path_for(stored_name), THUMBNAIL_SIZE, THUMBNAIL_JPEG_QUALITY, target)
    except Exception as exc:
        logger.warning("event=thumbnail_failed stored_name=%s error=%s", stored_name, exc)
        storage.remove_derivatives(stored_name)
        return None
    logger.info("event=thumbnail_created stored_name=%s", stored_name)
    return target


def cached_thumbnail(stored_name: str) -> Optional[Path]:
    try:
        path = storage.thumbnail_path(stored_name)
    except (ValueError, RuntimeError):
        return None
    return path if path.is_file() else None


def render_preview(source: Path) -> bytes:
    """Re-encode an image as a size-capped JPEG. Raises if Pillow cannot read it."""
    buffer = io.BytesIO()
    _encode_jpeg(source, PREVIEW_MAX_DIMENSION, PREVIEW_JPEG_QUALITY, buffer)
    return buffer.getvalue()
