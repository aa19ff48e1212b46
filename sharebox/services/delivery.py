"""Read paths that hand out file content: downloads, previews, share resolve.

Each path resolves the record, runs it through the access gate, confirms the
bytes are on disk, bumps its counter with a single UPDATE and only then hands
back what to stream. The counter is committed before the body is sent, so an
aborted transfer still counts.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from sharebox import storage
from sharebox.config import CACHE_MAX_AGE_SECONDS
from sharebox.core.context import RequestContext
from sharebox.core.exceptions import StorageInconsistency, UnsupportedPreview
from sharebox.core.metrics import metrics
from sharebox.models import FileRecord, utcnow
from sharebox.services import access, derivatives, files

logger = logging.getLogger("sharebox.delivery")

PREVIEWABLE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "application/pdf",
        "text/plain",
        "text/html",
        "text/css",
        "text/javascript",
        "application/json",
    }
)

ATTACHMENT = "attachment"
INLINE = "inline"


@dataclass
class Delivery:
    """What to send back: either a file on disk or an in-memory body."""

    filename: str
    media_type: str
    disposition: str
    path: Optional[Path] = None
    body: Optional[bytes] = None
    cache_control: str = "no-store"


def _ensure_bytes(record: FileRecord) -> Path:
    if not storage.exists(record.stored_name):
        logger.error(
            "event=storage_inconsistency file_id=%s stored_name=%s owner_id=%s",
            record.id,
            record.stored_name,
            record.owner_id,
        )
        raise StorageInconsistency()
    return storage.path_for(record.stored_name)


def _bump(session: Session, record: FileRecord, **values) -> None:
    session.exec(update(FileRecord).where(FileRecord.id == record.id).values(**values))
    session.commit()
    session.refresh(record)


def record_download(session: Session, record: FileRecord) -> None:
    _bump(session, record, download_count=FileRecord.download_count + 1, last_downloaded_at=utcnow())
    metrics.record_download()


def record_view(session: Session, record: FileRecord) -> None:
    _bump(session, record, view_count=FileRecord.view_count + 1)


def _download(session: Session, record: Optional[FileRecord], requester: access.Requester, password: Optional[str]):
    record = access.require(record, requester, password)
    path = _ensure_bytes(record)
    record_download(session, record)
    logger.info(
        "event=file_downloaded file_id=%s via=%s download_count=%s",
        record.id,
        "share" if requester.via_share_link else "owner",
        record.download_count,
    )
    return Delivery(
        filename=record.original_name,
        media_type=record.content_type or "application/octet-stream",
        disposition=ATTACHMENT,
        path=path,
    )


def owner_download(session: Session, ctx: RequestContext, file_id: str, password: Optional[str]) -> Delivery:
    record = files.get_owned(session, file_id, ctx.user_id)
    return _download(session, record, access.Requester.owner(ctx.user_id), password)


def share_download(session: Session, share_id: str, password: Optional[str]) -> Delivery:
    record = files.get_by_share_id(session, share_id)
    return _download(session, record, access.Requester.visitor(), password)


def _preview(
    session: Session,
    record: Optional[FileRecord],
    requester: access.Requester,
    password: Optional[str],
    thumbnail: bool,
) -> Delivery:
    record = access.require(record, requester, password)
    if (record.content_type or "").lower() not in PREVIEWABLE_TYPES:
        raise UnsupportedPreview()
    path = _ensure_bytes(record)
    record_view(session, record)
    metrics.record_preview()

    cache_control = "private, no-store" if record.has_password else f"public, max-age={CACHE_MAX_AGE_SECONDS}"
    delivery = Delivery(
        filename=record.original_name,
        media_type=record.content_type,
        disposition=INLINE,
        path=path,
        cache_control=cache_control,
    )
    if not derivatives.is_raster_image(record.content_type):
        return delivery

    if thumbnail:
        cached = derivatives.cached_thumbnail(record.stored_name)
        if cached is not None:
            delivery.path = cached
            delivery.media_type = "image/jpeg"
            return delivery
    try:
        delivery.body = derivatives.render_preview(path)
    except Exception as exc:
        logger.warning("event=preview_render_failed file_id=%s error=%s", record.id, exc)
        return delivery
    delivery.path = None
    delivery.media_type = "image/jpeg"
    return delivery


def owner_preview(
    session: Session, ctx: RequestContext, file_id: str, password: Optional[str], thumbnail: bool = False
) -> Delivery:
    record = files.get_owned(session, file_id, ctx.user_id)
    return _preview(session, record, access.Requester.owner(ctx.user_id), password, thumbnail)


def share_preview(session: Session, share_id: str, password: Optional[str], thumbnail: bool = False) -> Delivery:
    record = files.get_by_share_id(session, share_id)
    return _preview(session, record, access.Requester.visitor(), password, thumbnail)


def resolve_share(session: Session, share_id: str) -> dict:
    """Public metadata for a share link. Counts as a view."""
    record = access.require(files.get_by_share_id(session, share_id), access.Requester.visitor(), content=False)
    record_view(session, record)
    return files.shared_view(record)
