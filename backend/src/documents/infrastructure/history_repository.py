from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.infrastructure.models import UserModel
from documents.domain.entities import HistoryAction, HistoryEntry
from documents.infrastructure.models import DocumentHistoryModel


class DbHistoryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entry: HistoryEntry) -> HistoryEntry:
        model = DocumentHistoryModel(
            document_id=entry.document_id,
            action_type=entry.action_type.value,
            action_by=entry.action_by,
            action_date=entry.action_date,
            version=entry.version,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            comments=entry.comments,
            file_url=entry.file_url,
        )
        self.session.add(model)
        await self.session.flush()
        return _to_entity(model)

    async def list_for_document(
        self,
        document_id: UUID,
        action_types: tuple[HistoryAction, ...] | None = None,
    ) -> list[HistoryEntry]:
        query = (
            select(DocumentHistoryModel, UserModel.username)
            .outerjoin(UserModel, UserModel.id == DocumentHistoryModel.action_by)
            .where(DocumentHistoryModel.document_id == document_id)
        )
        if action_types:
            query = query.where(
                DocumentHistoryModel.action_type.in_([a.value for a in action_types])
            )
        result = await self.session.execute(
            query.order_by(DocumentHistoryModel.action_date.asc(), DocumentHistoryModel.id.asc())
        )
        return [_to_entity(model, username) for model, username in result.all()]

    async def delete_for_document(self, document_id: UUID) -> None:
        await self.session.execute(
            delete(DocumentHistoryModel).where(DocumentHistoryModel.document_id == document_id)
        )


def _to_entity(model: DocumentHistoryModel, username: str | None = None) -> HistoryEntry:
    return HistoryEntry(
        id=model.id,
        document_id=model.document_id,
        action_type=HistoryAction(model.action_type),
        action_by=model.action_by,
        action_date=model.action_date,
        version=model.version,
        previous_status=model.previous_status,
        new_status=model.new_status,
        comments=model.comments,
        file_url=model.file_url,
        action_by_username=username,
    )
