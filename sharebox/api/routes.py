from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile
from sqlmodel import Session

from sharebox.api.deps import current_context, enforce_rate_limit, send, supplied_password
from sharebox.config import DEFAULT_PAGE_SIZE
from sharebox.core.context import RequestContext
from sharebox.db import get_session
from sharebox.schemas import FileUpdate, PasswordBody
from sharebox.services import deletion, delivery, derivatives, files, uploads

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.post("/upload", status_code=201, dependencies=[Depends(enforce_rate_limit)])
def upload(
    background_tasks: BackgroundTasks,
    files_: List[UploadFile] = File(..., alias="files"),
    folder_id: Optional[str] = Form(None, alias="folderId"),
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    incoming = [
        uploads.IncomingFile.from_stream(f.filename or "", f.content_type, f.file, f.size) for f in files_
    ]
    records = uploads.upload_batch(session, ctx, incoming, folder_id)

    # Thumbnails run after the response; a failure there never touches the upload
    for stored_name, content_type in uploads.thumbnail_jobs(records):
        background_tasks.add_task(derivatives.generate_thumbnail, stored_name, content_type)

    return {
        "message": f"{len(records)} file(s) uploaded successfully",
        "files": [files.upload_projection(r) for r in records],
    }


@router.get("/my-files")
def my_files(
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    return files.list_owned(
        session,
        ctx,
        page=page,
        limit=limit,
        search=search,
        category_filter=category,
        sort_by=sortBy,
        sort_order=sortOrder,
    )


@router.get("/preview/{file_id}")
def preview(
    file_id: str,
    thumbnail: bool = False,
    password: Optional[str] = Depends(supplied_password),
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    return send(delivery.owner_preview(session, ctx, file_id, password, thumbnail=thumbnail))


@router.post("/download/{file_id}")
def download(
    file_id: str,
    body: Optional[PasswordBody] = None,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    return send(delivery.owner_download(session, ctx, file_id, body.password if body else None))


@router.get("/shared/{share_id}", dependencies=[Depends(enforce_rate_limit)])
def shared_metadata(share_id: str, session: Session = Depends(get_session)):
    return {"file": delivery.resolve_share(session, share_id)}


@router.get("/shared/{share_id}/preview", dependencies=[Depends(enforce_rate_limit)])
def shared_preview(
    share_id: str,
    thumbnail: bool = False,
    password: Optional[str] = Depends(supplied_password),
    session: Session = Depends(get_session),
):
    return send(delivery.share_preview(session, share_id, password, thumbnail=thumbnail))


@router.post("/shared/{share_id}/download", dependencies=[Depends(enforce_rate_limit)])
def shared_download(
    share_id: str,
    body: Optional[PasswordBody] = None,
    session: Session = Depends(get_session),
):
    return send(delivery.share_download(session, share_id, body.password if body else None))


@router.get("/{file_id}")
def file_detail(
    file_id: str,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    return {"file": files.read_metadata(session, ctx, file_id)}


@router.put("/{file_id}")
def update_file(
    file_id: str,
    body: FileUpdate,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    changes = body.model_dump(exclude_unset=True)
    return {"message": "File updated successfully", "file": files.update_file(session, ctx, file_id, changes)}


@router.delete("/{file_id}")
def delete_file(
    file_id: str,
    session: Session = Depends(get_session),
    ctx: RequestContext = Depends(current_context),
):
    return deletion.soft_delete_owned(session, ctx, file_id)
