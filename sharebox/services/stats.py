from datetime import timedelta

from sqlalchemy import func
from sqlmodel import Session, select

from sharebox.models import FileRecord, User, utcnow


def fetch_storage_totals(session: Session) -> dict[str, int]:
    total_files = session.exec(select(func.count(FileRecord.id))).one()
    active_bytes = session.exec(
        select(func.coalesce(func.sum(FileRecord.size_bytes), 0)).where(FileRecord.is_active == True)  # noqa: E712
    ).one()
    total_bytes = session.exec(select(func.coalesce(func.sum(FileRecord.size_bytes), 0))).one()

    return {
        "total_files": int(total_files or 0),
        "active_bytes": int(active_bytes or 0),
        "total_bytes": int(total_bytes or 0),
    }


def _count(session: Session, model, *conditions) -> int:
    return int(session.exec(select(func.count()).select_from(model).where(*conditions)).one() or 0)


def fetch_admin_stats(session: Session) -> dict:
    active = FileRecord.is_active == True  # noqa: E712
    week_ago = utcnow() - timedelta(days=7)

    used_sum, used_avg, used_max = session.exec(
        select(
            func.coalesce(func.sum(User.storage_used), 0),
            func.coalesce(func.avg(User.storage_used), 0),
            func.coalesce(func.max(User.storage_used), 0),
        )
    ).one()
    file_types = session.exec(
        select(FileRecord.content_type, func.count(FileRecord.id), func.sum(FileRecord.size_bytes))
        .where(active)
        .group_by(FileRecord.content_type)
        .order_by(func.count(FileRecord.id).desc())
        .limit(10)
    ).all()
    totals = fetch_storage_totals(session)

    return {
        "users": {
            "total": _count(session, User),
            "active": _count(session, User, User.is_active == True),  # noqa: E712
        },
        "files": {
            "total": totals["total_files"],
            "active": _count(session, FileRecord, active),
            "public": _count(session, FileRecord, active, FileRecord.is_public == True),  # noqa: E712
            "recentUploads": _count(session, FileRecord, active, FileRecord.created_at >= week_ago),
        },
        "storage": {
            "totalStorageUsed": int(used_sum or 0),
            "averageStorageUsed": float(used_avg or 0),
            "maxStorageUsed": int(used_max or 0),
            "activeBytes": totals["active_bytes"],
            "bytesOnDisk": totals["total_bytes"],
        },
        "fileTypes": [
            {"mimetype": mime, "count": int(count), "totalSize": int(size or 0)} for mime, count, size in file_types
        ],
    }
