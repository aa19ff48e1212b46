from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from sharebox.core.context import RequestContext
from sharebox.core.exceptions import Forbidden, NotFound
from sharebox.models import FileRecord, User, utcnow
from sharebox.services import files, ledger

logger = logging.getLogger("sharebox.users")

USER_SORT_COLUMNS = {
    "createdAt": User.created_at,
    "storageUsed": User.storage_used,
    "maxStorage": User.max_storage,
}


def user_view(user: User) -> dict:
    return {
        "id": user.id,
        "role": user.role,
        "isActive": user.is_active,
        "storageUsed": user.storage_used,
        "storageUsedFormatted": files.format_size(user.storage_used),
        "maxStorage": user.max_storage,
        "maxStorageFormatted": files.format_size(user.max_storage),
        "createdAt": user.created_at,
    }


def load_account(session: Session, ctx: RequestContext) -> User:
    """Provision on first sight and refuse disabled accounts."""
    user = ledger.get_or_create_user(session, ctx.user_id)
    if not user.is_active:
        raise Forbidden("Account is disabled")
    return user


def list_users(
    session: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> dict:
    page, limit = files.paginate(page, limit)
    conditions = []
    if search and search.strip():
        conditions.append(User.id.ilike(f"%{search.strip()}%"))

    total = session.exec(select(func.count()).select_from(User).where(*conditions)).one()
    column = USER_SORT_COLUMNS.get(sort_by or "", User.created_at)
    order = column.asc() if (sort_order or "").lower() == "asc" else column.desc()
    rows = session.exec(
        select(User).where(*conditions).order_by(order).offset((page - 1) * limit).limit(limit)
    ).all()

    envelope = files.pagination_envelope(page, limit, int(total))
    envelope["totalUsers"] = envelope.pop("totalFiles")
    return {"users": [user_view(u) for u in rows], "pagination": envelope}


def update_user(session: Session, user_id: str, changes: dict) -> dict:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]
    if changes.get("role") is not None:
        user.role = changes["role"]
    if changes.get("max_storage") is not None:
        user.max_storage = changes["max_storage"]
    user.updated_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("event=user_updated user_id=%s fields=%s", user.id, ",".join(sorted(changes)))
    return user_view(user)


def list_all_files(
    session: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> dict:
    """Moderation listing: every record, soft-deleted ones included."""
    page, limit = files.paginate(page, limit)
    conditions = []
    if search and search.strip():
        needle = f"%{search.strip()}%"
        conditions.append(or_(FileRecord.original_name.ilike(needle), FileRecord.stored_name.ilike(needle)))

    total = session.exec(select(func.count()).select_from(FileRecord).where(*conditions)).one()
    rows = session.exec(
        select(FileRecord)
        .where(*conditions)
        .order_by(files.order_clause(sort_by, sort_order))
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "files": [files.admin_view(r) for r in rows],
        "pagination": files.pagination_envelope(page, limit, int(total)),
    }
