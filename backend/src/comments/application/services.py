import csv
import io
import logging
from datetime import datetime, timezone
from uuid import UUID

from comments.domain.entities import Comment
from documents.application.services import require_participant
from documents.domain.repository import UnitOfWork
from shared.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EXPORT_HEADER = ["User", "Page", "Comment", "Date", "Version"]


def _check_position(position: tuple[float, float] | None) -> None:
    if position is None:
        return
    if not all(0 <= coordinate <= 100 for coordinate in position):
        raise ValidationError("Comment position must be a percentage between 0 and 100")


async def add_comment(
    uow: UnitOfWork,
    document_id: UUID,
    author_id: UUID,
    text: str,
    page_number: int | None,
    version: int,
    position: tuple[float, float] | None = None,
) -> Comment:
    """Attach a comment to the version the author is viewing.

    `position` is an (x, y) pair in percent of the page size, or None for a
    comment that is not anchored to a point.
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text is required")
    if page_number is not None and page_number < 1:
        raise ValidationError("Page number must be a positive integer")
    _check_position(position)

    async with uow:
        document = await uow.documents.get_by_id(document_id)
        if not document:
            raise NotFoundError("Document", str(document_id))
        if not 1 <= version <= document.current_version:
            raise ValidationError(
                f"Version must be between 1 and {document.current_version}"
            )
        await require_participant(uow, document, author_id)

        author = await uow.users.get_by_id(author_id)
        x, y = position if position is not None else (None, None)
        comment = await uow.comments.add(
            Comment(
                document_id=document_id,
                comment_text=text,
                commented_by=author_id,
                page_number=page_number,
                x_position=x,
                y_position=y,
                version=version,
                author_username=author.username if author else None,
                created_at=datetime.now(timezone.utc),
            )
        )

    logger.info("Comment %s added to document %s v%d", comment.id, document_id, version)
    return comment


async def list_comments(
    uow: UnitOfWork, document_id: UUID, version: int, viewer_id: UUID | None = None
) -> list[Comment]:
    async with uow:
        if viewer_id is not None:
            document = await uow.documents.get_by_id(document_id)
            if not document:
                return []
            await require_participant(uow, document, viewer_id)
        return await uow.comments.list_for_version(document_id, version)


def export_comments(comments: list[Comment]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for comment in comments:
        writer.writerow(
            [
                comment.author_username or "Unknown User",
                comment.page_number or "N/A",
                comment.comment_text,
                comment.created_at.isoformat(sep=" ", timespec="seconds") if comment.created_at else "",
                comment.version or 1,
            ]
        )
    return buffer.getvalue()
