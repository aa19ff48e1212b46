"""Upload pipeline: validate a batch, write bytes, then record and charge.

Order matters: every byte object is on disk before any record is committed,
and records plus the ledger charge are committed in one transaction. If any
write or the commit fails, everything written for the batch is removed.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from sharebox import storage
from sharebox.config import ALLOWED_MIME_TYPES, MAX_FILE_SIZE, MAX_FILES_PER_UPLOAD
from sharebox.core.context import RequestContext
from sharebox.core.exceptions import (
    FileTooLarge,
    InvalidFileType,
    InvalidInput,
    QuotaExceeded,
    StorageWriteFailed,
)
from sharebox.core.metrics import metrics
from sharebox.models import FileRecord
from sharebox.services import derivatives, ledger

logger = logging.getLogger("sharebox.uploads")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class IncomingFile:
    filename: str
    content_type: str
    stream: BinaryIO
    size: int

    @classmethod
    def from_stream(cls, filename: str, content_type: Optional[str], stream: BinaryIO, size: Optional[int] = None):
        if size is None:
            stream.seek(0, os.SEEK_END)
            size = stream.tell()
        stream.seek(0)
        content_type = (content_type or DEFAULT_CONTENT_TYPE).strip().lower()
        return cls(filename=filename, content_type=content_type, stream=stream, size=size)


def mime_allowed(content_type: str, allowlist: list[str] = ALLOWED_MIME_TYPES) -> bool:
    if not allowlist:
        return True
    mime = content_type.lower()
    for allowed in allowlist:
        if allowed.endswith("/*") and mime.startswith(allowed[:-1]):
            return True
        if mime == allowed:
            return True
    return False


def validate_batch(files: list[IncomingFile]) -> None:
    if not files:
        raise InvalidInput("No files uploaded", errors=[{"field": "files", "message": "No files uploaded"}])
    if len(files) > MAX_FILES_PER_UPLOAD:
        message = f"At most {MAX_FILES_PER_UPLOAD} files can be uploaded at once"
        raise InvalidInput(message, errors=[{"field": "files", "message": message}])
    for item in files:
        if not item.filename:
            raise InvalidInput("Missing filename", errors=[{"field": "files", "message": "Missing filename"}])
        if item.size > MAX_FILE_SIZE:
            logger.warning(
                "event=upload_rejected reason=max_size filename=%s size_bytes=%s limit_bytes=%s",
                item.filename,
                item.size,
                MAX_FILE_SIZE,
            )
            raise FileTooLarge(f"File too large. Maximum allowed size is {MAX_FILE_SIZE / (1024 * 1024):.1f} MB.")
        if not mime_allowed(item.content_type):
            logger.warning(
                "event=upload_rejected reason=file_type filename=%s content_type=%s", item.filename, item.content_type
            )
            raise InvalidFileType(f"File type {item.content_type} is not allowed")


def _discard(stored_names: list[str]) -> None:
    for name in stored_names:
        storage.remove_file(name)


def upload_batch(
    session: Session,
    ctx: RequestContext,
    files: list[IncomingFile],
    folder_id: Optional[str] = None,
) -> list[FileRecord]:
    validate_batch(files)
    user = ledger.get_or_create_user(session, ctx.user_id)
    try:
        ledger.ensure_capacity(user, sum(item.size for item in files))
    except QuotaExceeded:
        metrics.record_quota_rejection()
        raise

    written: list[str] = []
    records: list[FileRecord] = []
    try:
        for item in files:
            stored_name = storage.reserve_stored_name(item.filename)
            size = storage.write_stream(stored_name, item.stream)
            written.append(stored_name)
            records.append(
                FileRecord(
                    share_id=storage.generate_share_id(),
                    original_name=item.filename,
                    stored_name=stored_name,
                    content_type=item.content_type,
                    size_bytes=size,
                    owner_id=user.id,
                    folder_id=folder_id or None,
                )
            )
    except StorageWriteFailed:
        _discard(written)
        raise

    total = sum(r.size_bytes for r in records)
    try:
        session.add_all(records)
        ledger.charge(session, user.id, total)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        _discard(written)
        logger.error("event=upload_commit_failed user_id=%s error=%s", user.id, exc)
        raise StorageWriteFailed("Could not record the uploaded files") from exc

    for record in records:
        session.refresh(record)
        logger.info(
            "event=upload_success file_id=%s owner_id=%s size_bytes=%s content_type=%s",
            record.id,
            record.owner_id,
            record.size_bytes,
            record.content_type,
        )
    metrics.record_upload(len(records), total)
    return records


def thumbnail_jobs(records: list[FileRecord]) -> list[tuple[str, str]]:
    """``(stored_name, content_type)`` pairs that should get a thumbnail."""
    return [(r.stored_name, r.content_type) for r in records if derivatives.is_raster_image(r.content_type)]
