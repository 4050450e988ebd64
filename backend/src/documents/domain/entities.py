from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class DocumentStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Recipients and documents share the same three states
ApprovalStatus = DocumentStatus


class ApprovalAction(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"
    REVERT = "revert"


class HistoryAction(StrEnum):
    INITIAL_UPLOAD = "initial_upload"
    VERSION_UPDATE = "version_update"
    APPROVE = "approve"
    REJECT = "reject"
    REVERT = "revert"


VERSION_ACTIONS = (HistoryAction.INITIAL_UPLOAD, HistoryAction.VERSION_UPDATE)


@dataclass
class Document:
    title: str
    uploaded_by: UUID
    file_url: str
    status: DocumentStatus = DocumentStatus.PENDING
    current_version: int = 1
    id: UUID | None = field(default=None)
    uploader_username: str | None = field(default=None)
    created_at: datetime | None = field(default=None)
    updated_at: datetime | None = field(default=None)


@dataclass
class ApprovalEntry:
    share_id: UUID
    status: ApprovalStatus
    date: datetime
    user_id: UUID
    version: int
    reason: str | None = None
    id: int | None = field(default=None)


@dataclass
class SharedDocument:
    document_id: UUID
    shared_with_user_id: UUID
    current_version: int = 1
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    is_approved: bool = False
    approval_date: datetime | None = None
    approval_history: list[ApprovalEntry] = field(default_factory=list)
    id: UUID | None = field(default=None)
    username: str | None = field(default=None)
    created_at: datetime | None = field(default=None)


@dataclass
class HistoryEntry:
    document_id: UUID
    action_type: HistoryAction
    action_by: UUID
    action_date: datetime
    version: int
    previous_status: str | None = None
    new_status: str | None = None
    comments: str | None = None
    file_url: str | None = None
    id: int | None = field(default=None)
    action_by_username: str | None = field(default=None)


@dataclass(frozen=True)
class VersionRef:
    version: int
    file_url: str | None


_TRANSITIONS = {
    (ApprovalStatus.PENDING, ApprovalAction.APPROVE): ApprovalStatus.APPROVED,
    (ApprovalStatus.PENDING, ApprovalAction.REJECT): ApprovalStatus.REJECTED,
    (ApprovalStatus.APPROVED, ApprovalAction.REVERT): ApprovalStatus.PENDING,
    (ApprovalStatus.REJECTED, ApprovalAction.REVERT): ApprovalStatus.PENDING,
}


def next_approval_status(current: ApprovalStatus, action: ApprovalAction) -> ApprovalStatus | None:
    """Return the state a share row moves to, or None if the move is not allowed."""
    return _TRANSITIONS.get((current, action))


def aggregate_status(
    current: DocumentStatus, shares: list[SharedDocument]
) -> DocumentStatus:
    """Derive the document status from its recipients' decisions.

    Unanimous approval promotes the document to approved. Losing unanimity
    after that drops it back to pending. Anything else leaves it alone.
    """
    if shares and all(s.is_approved for s in shares):
        return DocumentStatus.APPROVED
    if current == DocumentStatus.APPROVED:
        return DocumentStatus.PENDING
    return current
