from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from documents.interfaces.schemas import DocumentResponse, ShareResponse


class UserSummaryResponse(BaseModel):
    id: UUID
    username: str


class DocumentCardResponse(BaseModel):
    document: DocumentResponse
    shares: list[ShareResponse]


class DashboardResponse(BaseModel):
    uploaded: list[DocumentCardResponse]
    shared: list[DocumentCardResponse]
    users: list[UserSummaryResponse]
    fetched_at: datetime
    stale: bool = False
