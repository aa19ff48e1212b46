"""Soft delete and permanent purge.

Quota is given back exactly once, at the moment a record leaves the active
set. The flip from active to inactive is a conditional UPDATE, and only the
request whose UPDATE matched a row credits the ledger, so repeated or racing
deletes cannot credit twice.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, update
from sqlmodel import Session

from sharebox import storage
from sharebox.core.context import RequestContext
from sharebox.core.exceptions import Forbidden, NotFound
from sharebox.core.metrics import metrics
from sharebox.models import FileRecord, utcnow
from sharebox.services import files, ledger

logger = logging.getLogger("sharebox.deletion")


def _deactivate(session: Session, record: FileRecord, deleted_by: Optional[str]) -> bool:
    """Mark inactive and credit the owner. False when it was already inactive."""
    now = utcnow()
    values = {"is_active": False, "deleted_at": now, "updated_at": now}
    if deleted_by is not None:
        values["deleted_by"] = deleted_by
    result = session.exec(
        update(FileRecord)
        .where(FileRecord.id == record.id, FileRecord.is_active == True)  # noqa: E712
        .values(**values)
    )
    if result.rowcount != 1:
        return False
    ledger.credit(session, record.owner_id, record.size_bytes)
    return True


def soft_delete_owned(session: Session, ctx: RequestContext, file_id: str) -> dict:
    record = files.get_owned(session, file_id, ctx.user_id)
    if record is None:
        raise NotFound()
    changed = _deactivate(session, record, deleted_by=None)
    session.commit()
    if changed:
        metrics.record_soft_delete()
        logger.info(
            "event=file_soft_deleted file_id=%s by=owner reclaimed_bytes=%s", record.id, record.size_bytes
        )
    return {"status": "deleted", "id": file_id}


def _require_admin(ctx: RequestContext) -> None:
    if not ctx.is_admin:
        raise Forbidden("Admin access required")


def soft_delete_admin(session: Session, ctx: RequestContext, file_id: str) -> dict:
    _require_admin(ctx)
    record = session.get(FileRecord, file_id)
    if record is None:
        raise NotFound()
    changed = _deactivate(session, record, deleted_by=ctx.user_id)
    session.commit()
    if changed:
        metrics.record_soft_delete()
        logger.info(
            "event=file_soft_deleted file_id=%s by=admin admin_id=%s reclaimed_bytes=%s",
            record.id,
            ctx.user_id,
            record.size_bytes,
        )
    return {"status": "deleted", "id": file_id}


def purge(session: Session, ctx: RequestContext, file_id: str) -> dict:
    """Remove bytes, thumbnail and record for good."""
    _require_admin(ctx)
    record = session.get(FileRecord, file_id)
    if record is None:
        raise NotFound()
    stored_name, owner_id, size = record.stored_name, record.owner_id, record.size_bytes

    # Bytes first: a failed unlink is logged and the purge carries on
    if not storage.remove_file(stored_name):
        logger.warning("event=purge_missing_bytes file_id=%s stored_name=%s", file_id, stored_name)
    storage.remove_derivatives(stored_name)

    reclaimed = _deactivate(session, record, deleted_by=ctx.user_id)
    result = session.exec(delete(FileRecord).where(FileRecord.id == file_id))
    session.commit()
    if result.rowcount != 1:
        # Purged by a concurrent request in the meantime
        raise NotFound()

    metrics.record_purge()
    logger.info(
        "event=file_purged file_id=%s owner_id=%s admin_id=%s reclaimed_bytes=%s",
        file_id,
        owner_id,
        ctx.user_id,
        size if reclaimed else 0,
    )
    return {"status": "purged", "id": file_id, "reclaimedBytes": size if reclaimed else 0}
