from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class CreateCommentRequest(BaseModel):
    comment_text: str = Field(min_length=1)
    page_number: int | None = Field(default=None, ge=1)
    x_position: float | None = Field(default=None, ge=0, le=100)
    y_position: float | None = Field(default=None, ge=0, le=100)
    version: int = Field(ge=1)


class CommentResponse(BaseModel):
    id: int
    document_id: UUID
    comment_text: str
    commented_by: UUID
    author_username: str | None = None
    page_number: int | None = None
    x_position: float | None = None
    y_position: float | None = None
    version: int
    created_at: datetime | None = None
