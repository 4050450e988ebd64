from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile

from auth.domain.entities import User
from dashboard.application.services import invalidate_dashboards
from dashboard.infrastructure.snapshot_cache import SnapshotCache
from documents.application.services import (
    add_version,
    create_document,
    delete_document,
    get_document,
    list_history,
    list_shared_with,
    list_shares,
    list_versions,
    record_approval,
)
from documents.domain.repository import BlobStore
from documents.infrastructure.unit_of_work import DbUnitOfWork
from documents.interfaces.schemas import (
    ApprovalRequest,
    DocumentResponse,
    HistoryResponse,
    ShareResponse,
    VersionResponse,
)
from shared.config import settings
from shared.dependencies import get_blob_store, get_current_user, get_snapshot_cache, get_uow
from shared.exceptions import AuthorizationError, ValidationError

router = APIRouter(prefix="/api/documents", tags=["documents"])


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File exceeds the maximum size of {settings.MAX_UPLOAD_BYTES} bytes"
        )
    return content


@router.post("", response_model=DocumentResponse, status_code=201)
async def create(
    title: str = Form(...),
    recipient_ids: list[UUID] = Form(...),
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
    blobs: BlobStore = Depends(get_blob_store),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    document = await create_document(
        uow,
        blobs,
        title=title,
        filename=file.filename or "",
        content=await _read_upload(file),
        uploader_id=current_user.id,
        recipient_ids=recipient_ids,
        content_type=file.content_type,
    )
    await invalidate_dashboards(cache, [current_user.id, *recipient_ids])
    return document


@router.get("/{user_id}", response_model=list[DocumentResponse])
async def shared_with_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    if user_id != current_user.id:
        raise AuthorizationError("You can only list documents shared with yourself")
    return await list_shared_with(uow, user_id)


@router.get("/{document_id}/detail", response_model=DocumentResponse)
async def detail(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    return await get_document(uow, document_id, viewer_id=current_user.id)


@router.post("/{document_id}/versions", response_model=DocumentResponse)
async def upload_version(
    document_id: UUID,
    file: UploadFile = File(...),
    expected_version: int | None = Form(None),
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
    blobs: BlobStore = Depends(get_blob_store),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    document = await add_version(
        uow,
        blobs,
        document_id=document_id,
        filename=file.filename or "",
        content=await _read_upload(file),
        uploader_id=current_user.id,
        expected_version=expected_version,
        content_type=file.content_type,
    )
    shares = await list_shares(uow, document_id)
    await invalidate_dashboards(
        cache, [current_user.id, *(s.shared_with_user_id for s in shares)]
    )
    return document


@router.delete("/{document_id}", status_code=204)
async def delete(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
    blobs: BlobStore = Depends(get_blob_store),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    shares = await list_shares(uow, document_id, viewer_id=current_user.id)
    await delete_document(uow, blobs, document_id=document_id, caller_id=current_user.id)
    await invalidate_dashboards(
        cache, [current_user.id, *(s.shared_with_user_id for s in shares)]
    )


@router.get("/{document_id}/versions", response_model=list[VersionResponse])
async def versions(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    return await list_versions(uow, document_id, viewer_id=current_user.id)


@router.get("/{document_id}/history", response_model=list[HistoryResponse])
async def history(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    return await list_history(uow, document_id, viewer_id=current_user.id)


@router.get("/{document_id}/shares", response_model=list[ShareResponse])
async def shares(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    return await list_shares(uow, document_id, viewer_id=current_user.id)


@router.post("/{document_id}/approval", response_model=ShareResponse)
async def approval(
    document_id: UUID,
    body: ApprovalRequest,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    share = await record_approval(
        uow,
        document_id=document_id,
        recipient_id=current_user.id,
        action=body.action,
        version=body.version,
        reason=body.reason,
    )
    document = await get_document(uow, document_id)
    await invalidate_dashboards(cache, [document.uploaded_by, current_user.id])
    return share
