from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass
class Comment:
    document_id: UUID
    comment_text: str
    commented_by: UUID
    version: int
    page_number: int | None = None
    x_position: float | None = None
    y_position: float | None = None
    id: int | None = field(default=None)
    author_username: str | None = field(default=None)
    created_at: datetime | None = field(default=None)
