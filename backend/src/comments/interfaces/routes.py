from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from auth.domain.entities import User
from comments.application.services import add_comment, export_comments, list_comments
from comments.interfaces.schemas import CommentResponse, CreateCommentRequest
from documents.infrastructure.unit_of_work import DbUnitOfWork
from shared.dependencies import get_current_user, get_uow
from shared.exceptions import ValidationError

router = APIRouter(prefix="/api/documents", tags=["comments"])


@router.post("/{document_id}/comments", response_model=CommentResponse, status_code=201)
async def create(
    document_id: UUID,
    body: CreateCommentRequest,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    if (body.x_position is None) != (body.y_position is None):
        raise ValidationError("Both x_position and y_position are required for an anchored comment")
    position = (
        (body.x_position, body.y_position) if body.x_position is not None else None
    )
    return await add_comment(
        uow,
        document_id=document_id,
        author_id=current_user.id,
        text=body.comment_text,
        page_number=body.page_number,
        version=body.version,
        position=position,
    )


@router.get("/{document_id}/comments", response_model=list[CommentResponse])
async def list_for_version(
    document_id: UUID,
    version: int = Query(ge=1),
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    return await list_comments(uow, document_id, version, viewer_id=current_user.id)


@router.get("/{document_id}/comments/export")
async def export(
    document_id: UUID,
    version: int = Query(ge=1),
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
):
    comments = await list_comments(uow, document_id, version, viewer_id=current_user.id)
    return Response(
        content=export_comments(comments),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{document_id}-v{version}-comments.csv"'
        },
    )
