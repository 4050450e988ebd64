from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.domain.entities import User
from auth.infrastructure.models import UserModel


class DbUserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def get_by_username(self, username: str) -> User | None:
        result = await self.session.execute(
            select(UserModel).where(UserModel.username == username)
        )
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def list_excluding(self, user_id: UUID, limit: int = 50) -> list[User]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id != user_id)
            .order_by(UserModel.username.asc())
            .limit(limit)
        )
        return [_to_entity(m) for m in result.scalars().all()]

    async def create(self, user: User) -> User:
        model = UserModel(username=user.username, password_hash=user.password_hash)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        return _to_entity(model)


def _to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        username=model.username,
        password_hash=model.password_hash,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
