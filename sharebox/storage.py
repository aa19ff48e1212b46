from __future__ import annotations

import logging
import os
import re
import secrets
import shutil
import string
from pathlib import Path
from typing import BinaryIO

from sharebox.config import SHARE_ID_BYTES, THUMBNAIL_DIR_NAME, THUMBNAIL_PREFIX, UPLOAD_DIR
from sharebox.core.exceptions import StorageWriteFailed

logger = logging.getLogger("sharebox.storage")

os.makedirs(UPLOAD_DIR, exist_ok=True)

UPLOAD_ROOT = Path(UPLOAD_DIR).resolve()
THUMBNAIL_ROOT = UPLOAD_ROOT / THUMBNAIL_DIR_NAME

_SLUG_ALPHABET = string.ascii_letters + string.digits
_SLUG_LENGTH = 24
_MAX_SLUG_ATTEMPTS = 5
_CHUNK_SIZE = 1024 * 1024
_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def _generate_slug(length: int = _SLUG_LENGTH) -> str:
    return "".join(secrets.choice(_SLUG_ALPHABET) for _ in range(length))


def generate_share_id() -> str:
    return secrets.token_urlsafe(SHARE_ID_BYTES)


def _safe_extension(original_name: str) -> str:
    ext = os.path.splitext(os.path.basename(original_name or ""))[1]
    return ext.lower() if _EXTENSION_RE.match(ext) else ".bin"


def reserve_stored_name(original_name: str) -> str:
    """Pick a server-side name; the client's name never addresses the disk."""
    ext = _safe_extension(original_name)
    for _ in range(_MAX_SLUG_ATTEMPTS):
        stored_name = f"{_generate_slug()}{ext}"
        if not (UPLOAD_ROOT / stored_name).exists():
            return stored_name
    raise StorageWriteFailed("Unable to allocate a unique storage name")


def _resolve_inside(root: Path, name: str) -> Path:
    path = (root / name).resolve()
    path.relative_to(root)
    return path


def path_for(stored_name: str) -> Path:
    return _resolve_inside(UPLOAD_ROOT, stored_name)


def thumbnail_name(stored_name: str) -> str:
    return f"{THUMBNAIL_PREFIX}{stored_name}"


def thumbnail_path(stored_name: str) -> Path:
    return _resolve_inside(THUMBNAIL_ROOT, thumbnail_name(stored_name))


def exists(stored_name: str) -> bool:
    try:
        return path_for(stored_name).is_file()
    except (ValueError, RuntimeError):
        return False


def write_stream(stored_name: str, stream: BinaryIO) -> int:
    """Copy ``stream`` to disk and return the number of bytes written."""
    try:
        path = path_for(stored_name)
        with open(path, "xb") as f:
            shutil.copyfileobj(stream, f, _CHUNK_SIZE)
            f.flush()
            os.fsync(f.fileno())
        return path.stat().st_size
    except FileExistsError as exc:
        # Someone else owns that name; leave their bytes alone
        logger.error("event=storage_name_collision stored_name=%s", stored_name)
        raise StorageWriteFailed() from exc
    except (OSError, ValueError) as exc:
        logger.error("event=storage_write_failed stored_name=%s error=%s", stored_name, exc)
        remove_file(stored_name)
        raise StorageWriteFailed() from exc


def remove_file(stored_name: str) -> bool:
    """Delete the byte object. Returns False when nothing was on disk."""
    try:
        path = path_for(stored_name)
    except (ValueError, RuntimeError):
        return False
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("event=storage_remove_failed stored_name=%s error=%s", stored_name, exc)
        return False


def remove_derivatives(stored_name: str) -> bool:
    try:
        thumbnail_path(stored_name).unlink()
        return True
    except FileNotFoundError:
        return False
    except (OSError, ValueError) as exc:
        logger.warning("event=thumbnail_remove_failed stored_name=%s error=%s", stored_name, exc)
        return False
