from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
import jwt

from auth.domain.entities import User
from auth.domain.repository import UserRepository
from shared.config import settings
from shared.exceptions import AuthenticationError, ConflictError, ValidationError


async def register_user(repo: UserRepository, username: str, password: str) -> User:
    username = username.strip()
    if not username or not password:
        raise ValidationError("Username and password are required")
    if await repo.get_by_username(username):
        raise ConflictError("Username already taken")

    user = User(
        username=username,
        password_hash=bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode(),
    )
    return await repo.create(user)


async def authenticate_user(
    repo: UserRepository, username: str, password: str
) -> tuple[User, str]:
    user = await repo.get_by_username(username)
    if not user or not bcrypt.checkpw(password.encode(), user.password_hash.encode()):
        raise AuthenticationError("Invalid username or password")

    token = _create_token(str(user.id))
    return user, token


async def verify_token(repo: UserRepository, token: str) -> User:
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
        user_id = UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired token")

    user = await repo.get_by_id(user_id)
    if not user:
        raise AuthenticationError("User not found")
    return user


async def list_other_users(repo: UserRepository, user_id: UUID, limit: int = 50) -> list[User]:
    return await repo.list_excluding(user_id, limit)


def _create_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
