from collections import defaultdict
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth.infrastructure.models import UserModel
from documents.domain.entities import ApprovalEntry, ApprovalStatus, SharedDocument
from documents.infrastructure.models import ApprovalEntryModel, SharedDocumentModel
from shared.exceptions import ConflictError


class DbSharedDocumentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_many(self, shares: list[SharedDocument]) -> list[SharedDocument]:
        models = [
            SharedDocumentModel(
                document_id=share.document_id,
                shared_with_user_id=share.shared_with_user_id,
                current_version=share.current_version,
                approval_status=share.approval_status.value,
                is_approved=share.is_approved,
            )
            for share in shares
        ]
        self.session.add_all(models)
        await self.session.flush()
        for model in models:
            await self.session.refresh(model)
        return [_to_entity(m) for m in models]

    async def list_for_document(self, document_id: UUID) -> list[SharedDocument]:
        result = await self.session.execute(
            select(SharedDocumentModel, UserModel.username)
            .outerjoin(UserModel, UserModel.id == SharedDocumentModel.shared_with_user_id)
            .where(SharedDocumentModel.document_id == document_id)
            .order_by(SharedDocumentModel.created_at.asc(), UserModel.username.asc())
            .execution_options(populate_existing=True)
        )
        rows = result.all()
        entries = await self._entries_for([model.id for model, _ in rows])
        return [
            _to_entity(model, username, entries.get(model.id, []))
            for model, username in rows
        ]

    async def get_for_recipient(
        self, document_id: UUID, user_id: UUID
    ) -> SharedDocument | None:
        result = await self.session.execute(
            select(SharedDocumentModel, UserModel.username)
            .outerjoin(UserModel, UserModel.id == SharedDocumentModel.shared_with_user_id)
            .where(
                SharedDocumentModel.document_id == document_id,
                SharedDocumentModel.shared_with_user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if not row:
            return None
        model, username = row
        entries = await self._entries_for([model.id])
        return _to_entity(model, username, entries.get(model.id, []))

    async def reset_for_version(self, document_id: UUID, version: int) -> None:
        await self.session.execute(
            update(SharedDocumentModel)
            .where(SharedDocumentModel.document_id == document_id)
            .values(
                approval_status=ApprovalStatus.PENDING.value,
                is_approved=False,
                current_version=version,
            )
        )

    async def record_decision(
        self,
        share_id: UUID,
        version: int,
        expected_status: ApprovalStatus,
        status: ApprovalStatus,
        is_approved: bool,
        date: datetime,
    ) -> None:
        result = await self.session.execute(
            update(SharedDocumentModel)
            .where(
                SharedDocumentModel.id == share_id,
                SharedDocumentModel.current_version == version,
                SharedDocumentModel.approval_status == expected_status.value,
            )
            .values(approval_status=status.value, is_approved=is_approved, approval_date=date)
        )
        if result.rowcount == 0:
            raise ConflictError("Approval state changed while the decision was recorded")

    async def append_entry(self, entry: ApprovalEntry) -> ApprovalEntry:
        model = ApprovalEntryModel(
            share_id=entry.share_id,
            status=entry.status.value,
            date=entry.date,
            user_id=entry.user_id,
            reason=entry.reason,
            version=entry.version,
        )
        self.session.add(model)
        await self.session.flush()
        return _entry_to_entity(model)

    async def delete_for_document(self, document_id: UUID) -> None:
        share_ids = select(SharedDocumentModel.id).where(
            SharedDocumentModel.document_id == document_id
        )
        await self.session.execute(
            delete(ApprovalEntryModel).where(ApprovalEntryModel.share_id.in_(share_ids))
        )
        await self.session.execute(
            delete(SharedDocumentModel).where(SharedDocumentModel.document_id == document_id)
        )

    async def _entries_for(self, share_ids: list[UUID]) -> dict[UUID, list[ApprovalEntry]]:
        if not share_ids:
            return {}
        result = await self.session.execute(
            select(ApprovalEntryModel)
            .where(ApprovalEntryModel.share_id.in_(share_ids))
            .order_by(ApprovalEntryModel.id.asc())
        )
        grouped: dict[UUID, list[ApprovalEntry]] = defaultdict(list)
        for model in result.scalars().all():
            grouped[model.share_id].append(_entry_to_entity(model))
        return grouped


def _to_entity(
    model: SharedDocumentModel,
    username: str | None = None,
    history: list[ApprovalEntry] | None = None,
) -> SharedDocument:
    return SharedDocument(
        id=model.id,
        document_id=model.document_id,
        shared_with_user_id=model.shared_with_user_id,
        current_version=model.current_version,
        approval_status=ApprovalStatus(model.approval_status),
        is_approved=model.is_approved,
        approval_date=model.approval_date,
        approval_history=history or [],
        username=username,
        created_at=model.created_at,
    )


def _entry_to_entity(model: ApprovalEntryModel) -> ApprovalEntry:
    return ApprovalEntry(
        id=model.id,
        share_id=model.share_id,
        status=ApprovalStatus(model.status),
        date=model.date,
        user_id=model.user_id,
        reason=model.reason,
        version=model.version,
    )
