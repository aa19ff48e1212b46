"""File record lookups, client projections, owner listing and owner edits.

Projections are the only way records leave the service layer; none of them
carries the storage name, the storage path or the password hash.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from sharebox.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from sharebox.core.context import RequestContext
from sharebox.core.exceptions import Gone, NotFound
from sharebox.models import FileRecord, utcnow
from sharebox.services import access

logger = logging.getLogger("sharebox.files")

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]

SORT_COLUMNS = {
    "createdAt": FileRecord.created_at,
    "updatedAt": FileRecord.updated_at,
    "originalName": FileRecord.original_name,
    "size": FileRecord.size_bytes,
    "downloadCount": FileRecord.download_count,
    "viewCount": FileRecord.view_count,
}


def format_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / (1024 ** exponent), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[exponent]}"


def category(content_type: str) -> str:
    mime = (content_type or "").lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    if mime.startswith("audio/"):
        return "audio"
    if "pdf" in mime:
        return "document"
    if "text/" in mime or "application/msword" in mime or "application/vnd.openxmlformats" in mime:
        return "document"
    if "zip" in mime or "rar" in mime or "7z" in mime:
        return "archive"
    return "other"


# Projections


def upload_projection(record: FileRecord) -> dict:
    return {
        "id": record.id,
        "originalName": record.original_name,
        "size": record.size_bytes,
        "sizeFormatted": format_size(record.size_bytes),
        "mimetype": record.content_type,
        "category": category(record.content_type),
        "shareId": record.share_id,
        "folderId": record.folder_id,
        "createdAt": record.created_at,
    }


def owner_summary(record: FileRecord) -> dict:
    data = upload_projection(record)
    data.update(
        {
            "isPublic": record.is_public,
            "password": record.has_password,
            "downloadCount": record.download_count,
            "viewCount": record.view_count,
            "expiresAt": record.expires_at,
            "updatedAt": record.updated_at,
        }
    )
    return data


def owner_detail(record: FileRecord) -> dict:
    data = owner_summary(record)
    data.update(
        {
            "hasPassword": record.has_password,
            "lastDownloadedAt": record.last_downloaded_at,
            "description": record.description,
            "tags": list(record.tags or []),
        }
    )
    return data


def shared_view(record: FileRecord) -> dict:
    return {
        "shareId": record.share_id,
        "originalName": record.original_name,
        "size": record.size_bytes,
        "sizeFormatted": format_size(record.size_bytes),
        "mimetype": record.content_type,
        "category": category(record.content_type),
        "downloadCount": record.download_count,
        "viewCount": record.view_count,
        "hasPassword": record.has_password,
        "expiresAt": record.expires_at,
        "description": record.description,
        "createdAt": record.created_at,
    }


def admin_view(record: FileRecord) -> dict:
    data = owner_summary(record)
    data.update(
        {
            "ownerId": record.owner_id,
            "filename": record.stored_name,
            "isActive": record.is_active,
            "isExpired": record.is_expired(),
            "deletedAt": record.deleted_at,
            "deletedBy": record.deleted_by,
        }
    )
    return data


# Lookups


def get_owned(session: Session, file_id: str, owner_id: str) -> Optional[FileRecord]:
    return session.exec(
        select(FileRecord).where(FileRecord.id == file_id, FileRecord.owner_id == owner_id)
    ).first()


def get_by_share_id(session: Session, share_id: str) -> Optional[FileRecord]:
    return session.exec(select(FileRecord).where(FileRecord.share_id == share_id)).first()


def paginate(page: int, limit: int) -> tuple[int, int]:
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    return page, limit


def pagination_envelope(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalFiles": total,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def order_clause(sort_by: Optional[str], sort_order: Optional[str]):
    column = SORT_COLUMNS.get(sort_by or "", FileRecord.created_at)
    return column.asc() if (sort_order or "").lower() == "asc" else column.desc()


# Operations


def read_metadata(session: Session, ctx: RequestContext, file_id: str) -> dict:
    record = access.require(
        get_owned(session, file_id, ctx.user_id), access.Requester.owner(ctx.user_id), content=False
    )
    return owner_detail(record)


def list_owned(
    session: Session,
    ctx: RequestContext,
    *,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    category_filter: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> dict:
    page, limit = paginate(page, limit)
    now = utcnow()
    conditions = [
        FileRecord.owner_id == ctx.user_id,
        FileRecord.is_active == True,  # noqa: E712
        or_(FileRecord.expires_at == None, FileRecord.expires_at > now),  # noqa: E711
    ]
    if search and search.strip():
        needle = f"%{search.strip()}%"
        conditions.append(or_(FileRecord.original_name.ilike(needle), FileRecord.description.ilike(needle)))
    if category_filter and category_filter.strip():
        conditions.append(FileRecord.content_type.ilike(f"%{category_filter.strip()}%"))

    total = session.exec(select(func.count()).select_from(FileRecord).where(*conditions)).one()
    rows = session.exec(
        select(FileRecord)
        .where(*conditions)
        .order_by(order_clause(sort_by, sort_order))
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "files": [owner_summary(r) for r in rows],
        "pagination": pagination_envelope(page, limit, int(total)),
    }


def update_file(session: Session, ctx: RequestContext, file_id: str, changes: dict) -> dict:
    """Apply owner edits. ``changes`` holds only the fields the client sent."""
    record = get_owned(session, file_id, ctx.user_id)
    if record is None:
        raise NotFound()
    # Expired records stay editable so an owner can push the expiry out
    if not record.is_active:
        raise Gone()

    if changes.get("is_public") is not None:
        record.is_public = changes["is_public"]
    if "password" in changes:
        secret = changes["password"]
        record.password_hash = access.hash_secret(secret) if secret else None
    if "expires_at" in changes:
        record.expires_at = changes["expires_at"]
    if "description" in changes:
        record.description = changes["description"]
    if "tags" in changes:
        record.tags = list(changes["tags"] or [])
    record.updated_at = utcnow()

    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info("event=file_updated file_id=%s fields=%s", record.id, ",".join(sorted(changes)))
    return {
        "id": record.id,
        "isPublic": record.is_public,
        "hasPassword": record.has_password,
        "expiresAt": record.expires_at,
        "description": record.description,
        "tags": list(record.tags or []),
    }
