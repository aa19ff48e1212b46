from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from sharebox.api.deps import admin_context
from sharebox.config import DEFAULT_PAGE_SIZE
from sharebox.core.context import RequestContext
from sharebox.core.metrics import metrics
from sharebox.db import get_session
from sharebox.schemas import UserUpdate
from sharebox.services import deletion, ledger, stats, users

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/files")
def all_files(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(admin_context),
):
    return users.list_all_files(
        session, page=page, limit=limit, search=search, sort_by=sortBy, sort_order=sortOrder
    )


@router.put("/files/{file_id}/soft-delete")
def soft_delete(
    file_id: str,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(admin_context),
):
    return deletion.soft_delete_admin(session, ctx, file_id)


@router.delete("/files/{file_id}/permanent")
def purge(
    file_id: str,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(admin_context),
):
    return deletion.purge(session, ctx, file_id)


@router.get("/users")
def all_users(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(admin_context),
):
    return users.list_users(session, page=page, limit=limit, search=search, sort_by=sortBy, sort_order=sortOrder)


@router.put("/users/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(admin_context),
):
    changes = body.model_dump(exclude_unset=True)
    return {"message": "User updated successfully", "user": users.update_user(session, user_id, changes)}


@router.get("/stats")
def admin_stats(session: Session = Depends(get_session), ctx: RequestContext = Depends(admin_context)):
    payload = stats.fetch_admin_stats(session)
    payload["counters"] = metrics.snapshot()
    return payload


@router.post("/ledger/reconcile")
def reconcile_ledger(session: Session = Depends(get_session), ctx: RequestContext = Depends(admin_context)):
    corrections = ledger.reconcile(session)
    return {"corrected": len(corrections), "corrections": corrections}
