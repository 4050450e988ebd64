from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from documents.domain.entities import (
    ApprovalAction,
    ApprovalStatus,
    DocumentStatus,
    HistoryAction,
)


class DocumentResponse(BaseModel):
    id: UUID
    title: str
    uploaded_by: UUID
    uploader_username: str | None = None
    file_url: str
    status: DocumentStatus
    current_version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApprovalEntryResponse(BaseModel):
    status: ApprovalStatus
    date: datetime
    user_id: UUID
    reason: str | None = None
    version: int


class ShareResponse(BaseModel):
    id: UUID
    document_id: UUID
    shared_with_user_id: UUID
    username: str | None = None
    current_version: int
    approval_status: ApprovalStatus
    is_approved: bool
    approval_date: datetime | None = None
    approval_history: list[ApprovalEntryResponse] = []


class ApprovalRequest(BaseModel):
    action: ApprovalAction
    version: int = Field(ge=1)
    reason: str | None = None


class HistoryResponse(BaseModel):
    id: int
    document_id: UUID
    action_type: HistoryAction
    action_by: UUID
    action_by_username: str | None = None
    action_date: datetime
    version: int
    previous_status: str | None = None
    new_status: str | None = None
    comments: str | None = None
    file_url: str | None = None


class VersionResponse(BaseModel):
    version: int
    file_url: str | None = None
