from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from documents.domain.entities import Document, SharedDocument


@dataclass
class UserSummary:
    id: UUID
    username: str


@dataclass
class DocumentCard:
    document: Document
    shares: list[SharedDocument] = field(default_factory=list)


@dataclass
class DashboardSnapshot:
    uploaded: list[DocumentCard]
    shared: list[DocumentCard]
    users: list[UserSummary]
    fetched_at: datetime
    stale: bool = False
