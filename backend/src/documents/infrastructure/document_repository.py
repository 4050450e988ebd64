from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth.infrastructure.models import UserModel
from documents.domain.entities import Document, DocumentStatus
from documents.infrastructure.models import DocumentModel, SharedDocumentModel
from shared.exceptions import ConflictError


def _with_uploader():
    return select(DocumentModel, UserModel.username).outerjoin(
        UserModel, UserModel.id == DocumentModel.uploaded_by
    )


def locked_document(document_id: UUID):
    # Only the documents row is locked; users sits on the nullable side of the join
    return (
        _with_uploader()
        .where(DocumentModel.id == document_id)
        .with_for_update(of=DocumentModel)
    )


class DbDocumentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, document: Document) -> Document:
        model = DocumentModel(
            title=document.title,
            uploaded_by=document.uploaded_by,
            file_url=document.file_url,
            status=document.status.value,
            current_version=document.current_version,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return _to_entity(model)

    async def get_by_id(self, document_id: UUID) -> Document | None:
        result = await self.session.execute(
            _with_uploader().where(DocumentModel.id == document_id)
        )
        row = result.one_or_none()
        return _to_entity(*row) if row else None

    async def get_for_update(self, document_id: UUID) -> Document | None:
        """Read the document and hold its row lock until the transaction ends."""
        result = await self.session.execute(
            locked_document(document_id).execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        return _to_entity(*row) if row else None

    async def bump_version(
        self, document_id: UUID, expected_version: int, file_url: str
    ) -> Document:
        result = await self.session.execute(
            update(DocumentModel)
            .where(
                DocumentModel.id == document_id,
                DocumentModel.current_version == expected_version,
            )
            .values(
                file_url=file_url,
                current_version=expected_version + 1,
                status=DocumentStatus.PENDING.value,
            )
        )
        if result.rowcount == 0:
            raise ConflictError("Document was modified by another user")

        refreshed = await self.session.execute(
            _with_uploader()
            .where(DocumentModel.id == document_id)
            .execution_options(populate_existing=True)
        )
        return _to_entity(*refreshed.one())

    async def set_status(self, document_id: UUID, status: DocumentStatus) -> None:
        await self.session.execute(
            update(DocumentModel)
            .where(DocumentModel.id == document_id)
            .values(status=status.value)
        )

    async def delete(self, document_id: UUID) -> None:
        await self.session.execute(
            delete(DocumentModel).where(DocumentModel.id == document_id)
        )

    async def list_uploaded_by(self, user_id: UUID, limit: int = 50) -> list[Document]:
        result = await self.session.execute(
            _with_uploader()
            .where(DocumentModel.uploaded_by == user_id)
            .order_by(DocumentModel.created_at.desc())
            .limit(limit)
        )
        return [_to_entity(model, username) for model, username in result.all()]

    async def list_shared_with(self, user_id: UUID, limit: int = 50) -> list[Document]:
        result = await self.session.execute(
            _with_uploader()
            .join(SharedDocumentModel, SharedDocumentModel.document_id == DocumentModel.id)
            .where(SharedDocumentModel.shared_with_user_id == user_id)
            .order_by(DocumentModel.created_at.desc())
            .limit(limit)
        )
        return [_to_entity(model, username) for model, username in result.all()]


def _to_entity(model: DocumentModel, uploader_username: str | None = None) -> Document:
    return Document(
        id=model.id,
        title=model.title,
        uploaded_by=model.uploaded_by,
        file_url=model.file_url,
        status=DocumentStatus(model.status),
        current_version=model.current_version,
        uploader_username=uploader_username,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
