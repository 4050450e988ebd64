from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: UUID
    username: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoginResponse(BaseModel):
    success: bool = True
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
