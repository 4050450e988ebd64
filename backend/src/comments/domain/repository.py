from typing import Protocol
from uuid import UUID

from comments.domain.entities import Comment


class CommentRepository(Protocol):
    async def add(self, comment: Comment) -> Comment: ...

    async def list_for_version(self, document_id: UUID, version: int) -> list[Comment]: ...

    async def delete_for_document(self, document_id: UUID) -> None: ...
