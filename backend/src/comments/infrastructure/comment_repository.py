from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.infrastructure.models import UserModel
from comments.domain.entities import Comment
from comments.infrastructure.models import CommentModel


class DbCommentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, comment: Comment) -> Comment:
        model = CommentModel(
            document_id=comment.document_id,
            comment_text=comment.comment_text,
            commented_by=comment.commented_by,
            page_number=comment.page_number,
            x_position=comment.x_position,
            y_position=comment.y_position,
            version=comment.version,
            created_at=comment.created_at or datetime.now(timezone.utc),
        )
        self.session.add(model)
        await self.session.flush()
        return _to_entity(model, comment.author_username)

    async def list_for_version(self, document_id: UUID, version: int) -> list[Comment]:
        result = await self.session.execute(
            select(CommentModel, UserModel.username)
            .outerjoin(UserModel, UserModel.id == CommentModel.commented_by)
            .where(CommentModel.document_id == document_id, CommentModel.version == version)
            .order_by(CommentModel.id.asc())
        )
        return [_to_entity(model, username) for model, username in result.all()]

    async def delete_for_document(self, document_id: UUID) -> None:
        await self.session.execute(
            delete(CommentModel).where(CommentModel.document_id == document_id)
        )


def _to_entity(model: CommentModel, username: str | None = None) -> Comment:
    return Comment(
        id=model.id,
        document_id=model.document_id,
        comment_text=model.comment_text,
        commented_by=model.commented_by,
        page_number=model.page_number,
        x_position=model.x_position,
        y_position=model.y_position,
        version=model.version,
        author_username=username,
        created_at=model.created_at,
    )
