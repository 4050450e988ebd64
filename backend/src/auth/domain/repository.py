from typing import Protocol
from uuid import UUID

from auth.domain.entities import User


class UserRepository(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...

    async def get_by_username(self, username: str) -> User | None: ...

    async def list_excluding(self, user_id: UUID, limit: int = 50) -> list[User]: ...

    async def create(self, user: User) -> User: ...
