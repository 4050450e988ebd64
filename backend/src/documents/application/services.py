import logging
from datetime import datetime, timezone
from uuid import UUID

from documents.domain.entities import (
    VERSION_ACTIONS,
    ApprovalAction,
    ApprovalEntry,
    ApprovalStatus,
    Document,
    DocumentStatus,
    HistoryAction,
    HistoryEntry,
    SharedDocument,
    VersionRef,
    aggregate_status,
    next_approval_status,
)
from documents.domain.repository import BlobStore, UnitOfWork
from documents.infrastructure.blob_store import blob_name
from shared.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _require_document(uow: UnitOfWork, document_id: UUID) -> Document:
    document = await uow.documents.get_by_id(document_id)
    if not document:
        raise NotFoundError("Document", str(document_id))
    return document


async def require_participant(uow: UnitOfWork, document: Document, user_id: UUID) -> None:
    """Only the uploader and the document's recipients may see or touch it."""
    if user_id == document.uploaded_by:
        return
    if not await uow.shares.get_for_recipient(document.id, user_id):
        raise AuthorizationError("You do not have access to this document")


async def _discard_blob(blobs: BlobStore, name: str) -> None:
    """Undo an upload whose rows never committed."""
    try:
        await blobs.remove([name])
    except StoreError as e:
        logger.warning("Could not remove orphaned blob %s: %s", name, e.message)


async def create_document(
    uow: UnitOfWork,
    blobs: BlobStore,
    title: str,
    filename: str,
    content: bytes,
    uploader_id: UUID,
    recipient_ids: list[UUID],
    content_type: str | None = None,
) -> Document:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if not content:
        raise ValidationError("File is empty")
    recipients = list(dict.fromkeys(recipient_ids))
    if not recipients:
        raise ValidationError("At least one recipient is required")
    if uploader_id in recipients:
        raise ValidationError("A document cannot be shared with its uploader")

    async with uow:
        for user_id in [uploader_id, *recipients]:
            if not await uow.users.get_by_id(user_id):
                raise NotFoundError("User", str(user_id))

    name = blob_name(filename, 1)
    file_url = await blobs.upload(name, content, content_type)
    try:
        async with uow:
            document = await uow.documents.add(
                Document(title=title, uploaded_by=uploader_id, file_url=file_url)
            )
            await uow.history.add(
                HistoryEntry(
                    document_id=document.id,
                    action_type=HistoryAction.INITIAL_UPLOAD,
                    action_by=uploader_id,
                    action_date=_now(),
                    version=1,
                    new_status=DocumentStatus.PENDING.value,
                    comments="Initial version",
                    file_url=file_url,
                )
            )
            await uow.shares.add_many(
                [
                    SharedDocument(document_id=document.id, shared_with_user_id=user_id)
                    for user_id in recipients
                ]
            )
    except Exception:
        await _discard_blob(blobs, name)
        raise

    logger.info(
        "Document %s created by %s and shared with %d recipient(s)",
        document.id, uploader_id, len(recipients),
    )
    return document


async def add_version(
    uow: UnitOfWork,
    blobs: BlobStore,
    document_id: UUID,
    filename: str,
    content: bytes,
    uploader_id: UUID,
    expected_version: int | None = None,
    content_type: str | None = None,
) -> Document:
    """Upload a new version and reset every recipient's decision."""
    if not content:
        raise ValidationError("File is empty")

    async with uow:
        document = await _require_document(uow, document_id)
    if document.uploaded_by != uploader_id:
        raise AuthorizationError("Only the uploader can add a new version")

    base_version = document.current_version if expected_version is None else expected_version
    if base_version != document.current_version:
        raise ConflictError(
            f"Document is at version {document.current_version}, not {base_version}"
        )
    new_version = base_version + 1

    name = blob_name(filename, new_version)
    file_url = await blobs.upload(name, content, content_type)
    try:
        async with uow:
            await uow.documents.get_for_update(document_id)
            updated = await uow.documents.bump_version(document_id, base_version, file_url)
            await uow.shares.reset_for_version(document_id, new_version)
            await uow.history.add(
                HistoryEntry(
                    document_id=document_id,
                    action_type=HistoryAction.VERSION_UPDATE,
                    action_by=uploader_id,
                    action_date=_now(),
                    version=new_version,
                    previous_status=document.status.value,
                    new_status=DocumentStatus.PENDING.value,
                    comments=f"Updated to version {new_version}",
                    file_url=file_url,
                )
            )
    except Exception:
        await _discard_blob(blobs, name)
        raise

    logger.info("Document %s moved to version %d", document_id, new_version)
    return updated


async def delete_document(
    uow: UnitOfWork, blobs: BlobStore, document_id: UUID, caller_id: UUID
) -> None:
    async with uow:
        document = await _require_document(uow, document_id)
        if document.uploaded_by != caller_id:
            raise AuthorizationError("Only the uploader can delete this document")
        history = await uow.history.list_for_document(document_id)

    urls = [document.file_url, *(entry.file_url for entry in history)]
    names = list(dict.fromkeys(n for n in map(blobs.name_from_url, urls) if n))
    # Blob failures abort before any row is removed
    if names:
        await blobs.remove(names)

    async with uow:
        await uow.shares.delete_for_document(document_id)
        await uow.comments.delete_for_document(document_id)
        await uow.history.delete_for_document(document_id)
        await uow.documents.delete(document_id)

    logger.info("Document %s deleted by %s (%d blob(s) removed)", document_id, caller_id, len(names))


def _transition_error(current: ApprovalStatus) -> ConflictError:
    if current == ApprovalStatus.PENDING:
        return ConflictError("Document is already pending")
    return ConflictError(f"Document already {current.value}")


async def record_approval(
    uow: UnitOfWork,
    document_id: UUID,
    recipient_id: UUID,
    action: ApprovalAction | str,
    version: int,
    reason: str | None = None,
) -> SharedDocument:
    try:
        action = ApprovalAction(action)
    except ValueError:
        raise ValidationError(f"Unknown approval action: {action}")
    if version < 1:
        raise ValidationError("Version must be a positive integer")
    reason = (reason.strip() or None) if reason else None
    now = _now()

    async with uow:
        # Decisions and version uploads on one document run one at a time
        document = await uow.documents.get_for_update(document_id)
        if not document:
            raise NotFoundError("Document", str(document_id))
        share = await uow.shares.get_for_recipient(document_id, recipient_id)
        if not share:
            raise NotFoundError("Shared document record", f"{document_id}/{recipient_id}")
        if version != share.current_version:
            raise ConflictError(
                f"Version {version} is not the current version ({share.current_version})"
            )

        new_status = next_approval_status(share.approval_status, action)
        if new_status is None:
            raise _transition_error(share.approval_status)

        await uow.shares.record_decision(
            share.id,
            version,
            share.approval_status,
            new_status,
            action == ApprovalAction.APPROVE,
            now,
        )
        await uow.shares.append_entry(
            ApprovalEntry(
                share_id=share.id,
                status=new_status,
                date=now,
                user_id=recipient_id,
                reason=reason,
                version=version,
            )
        )

        shares = await uow.shares.list_for_document(document_id)
        document_status = aggregate_status(document.status, shares)
        if document_status != document.status:
            await uow.documents.set_status(document_id, document_status)

        await uow.history.add(
            HistoryEntry(
                document_id=document_id,
                action_type=HistoryAction(action.value),
                action_by=recipient_id,
                action_date=now,
                version=version,
                previous_status=share.approval_status.value,
                new_status=new_status.value,
                comments=reason,
            )
        )
        updated = await uow.shares.get_for_recipient(document_id, recipient_id)

    logger.info(
        "Recipient %s %s document %s v%d (document status: %s)",
        recipient_id, new_status.value, document_id, version, document_status.value,
    )
    return updated


# Read operations take an optional viewer; when given, it must be a participant.


async def get_document(
    uow: UnitOfWork, document_id: UUID, viewer_id: UUID | None = None
) -> Document:
    async with uow:
        document = await _require_document(uow, document_id)
        if viewer_id is not None:
            await require_participant(uow, document, viewer_id)
    return document


async def list_shares(
    uow: UnitOfWork, document_id: UUID, viewer_id: UUID | None = None
) -> list[SharedDocument]:
    async with uow:
        document = await _require_document(uow, document_id)
        if viewer_id is not None:
            await require_participant(uow, document, viewer_id)
        return await uow.shares.list_for_document(document_id)


async def list_history(
    uow: UnitOfWork, document_id: UUID, viewer_id: UUID | None = None
) -> list[HistoryEntry]:
    async with uow:
        if viewer_id is not None:
            document = await uow.documents.get_by_id(document_id)
            if not document:
                return []
            await require_participant(uow, document, viewer_id)
        return await uow.history.list_for_document(document_id)


async def list_versions(
    uow: UnitOfWork, document_id: UUID, viewer_id: UUID | None = None
) -> list[VersionRef]:
    async with uow:
        document = await uow.documents.get_by_id(document_id)
        if not document:
            return []
        if viewer_id is not None:
            await require_participant(uow, document, viewer_id)
        entries = await uow.history.list_for_document(document_id, VERSION_ACTIONS)

    versions = {document.current_version: document.file_url}
    for entry in sorted(entries, key=lambda e: e.version, reverse=True):
        versions.setdefault(entry.version, entry.file_url)
    # Older data can lack the initial upload entry
    versions.setdefault(1, document.file_url)
    return [
        VersionRef(version=v, file_url=versions[v])
        for v in sorted(versions, reverse=True)
    ]


async def list_uploaded(uow: UnitOfWork, user_id: UUID, limit: int = 50) -> list[Document]:
    async with uow:
        return await uow.documents.list_uploaded_by(user_id, limit)


async def list_shared_with(uow: UnitOfWork, user_id: UUID, limit: int = 50) -> list[Document]:
    async with uow:
        return await uow.documents.list_shared_with(user_id, limit)
