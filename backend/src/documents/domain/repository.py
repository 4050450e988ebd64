from datetime import datetime
from typing import Protocol, Self
from uuid import UUID

from auth.domain.repository import UserRepository
from comments.domain.repository import CommentRepository
from documents.domain.entities import (
    ApprovalEntry,
    ApprovalStatus,
    Document,
    DocumentStatus,
    HistoryAction,
    HistoryEntry,
    SharedDocument,
)


class DocumentRepository(Protocol):
    async def add(self, document: Document) -> Document: ...

    async def get_by_id(self, document_id: UUID) -> Document | None: ...

    async def get_for_update(self, document_id: UUID) -> Document | None: ...

    async def bump_version(
        self, document_id: UUID, expected_version: int, file_url: str
    ) -> Document: ...

    async def set_status(self, document_id: UUID, status: DocumentStatus) -> None: ...

    async def delete(self, document_id: UUID) -> None: ...

    async def list_uploaded_by(self, user_id: UUID, limit: int = 50) -> list[Document]: ...

    async def list_shared_with(self, user_id: UUID, limit: int = 50) -> list[Document]: ...


class SharedDocumentRepository(Protocol):
    async def add_many(self, shares: list[SharedDocument]) -> list[SharedDocument]: ...

    async def list_for_document(self, document_id: UUID) -> list[SharedDocument]: ...

    async def get_for_recipient(
        self, document_id: UUID, user_id: UUID
    ) -> SharedDocument | None: ...

    async def reset_for_version(self, document_id: UUID, version: int) -> None: ...

    async def record_decision(
        self,
        share_id: UUID,
        version: int,
        expected_status: ApprovalStatus,
        status: ApprovalStatus,
        is_approved: bool,
        date: datetime,
    ) -> None: ...

    async def append_entry(self, entry: ApprovalEntry) -> ApprovalEntry: ...

    async def delete_for_document(self, document_id: UUID) -> None: ...


class HistoryRepository(Protocol):
    async def add(self, entry: HistoryEntry) -> HistoryEntry: ...

    async def list_for_document(
        self,
        document_id: UUID,
        action_types: tuple[HistoryAction, ...] | None = None,
    ) -> list[HistoryEntry]: ...

    async def delete_for_document(self, document_id: UUID) -> None: ...


class BlobStore(Protocol):
    async def upload(self, name: str, data: bytes, content_type: str | None = None) -> str: ...

    async def remove(self, names: list[str]) -> None: ...

    def name_from_url(self, url: str) -> str | None: ...


class UnitOfWork(Protocol):
    """Repositories bound to one transaction.

    Entering starts a block; a clean exit commits it and an exception
    rolls it back.
    """

    users: UserRepository
    documents: DocumentRepository
    shares: SharedDocumentRepository
    history: HistoryRepository
    comments: CommentRepository

    async def __aenter__(self) -> Self: ...

    async def __aexit__(self, exc_type, exc, tb) -> bool | None: ...
