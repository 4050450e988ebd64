from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.application.services import verify_token
from auth.infrastructure.user_repository import DbUserRepository
from dashboard.infrastructure.snapshot_cache import SnapshotCache
from documents.infrastructure.blob_store import HttpBlobStore, LocalBlobStore, build_blob_store
from documents.infrastructure.unit_of_work import DbUnitOfWork
from shared.config import settings
from shared.infrastructure.database import async_session
from shared.infrastructure.redis import get_redis_pool

security = HTTPBearer()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def get_uow(db: AsyncSession = Depends(get_db)) -> DbUnitOfWork:
    return DbUnitOfWork(db)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    repo = DbUserRepository(db)
    return await verify_token(repo, credentials.credentials)


@lru_cache
def get_blob_store() -> LocalBlobStore | HttpBlobStore:
    return build_blob_store(settings)


def get_snapshot_cache() -> SnapshotCache:
    return SnapshotCache(
        get_redis_pool(),
        stale_after=settings.DASHBOARD_STALE_SECONDS,
        retention=settings.DASHBOARD_RETENTION_SECONDS,
    )
