from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shared.config import settings


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # asyncpg enforces a per-statement deadline; other drivers rely on the pool timeout
    if url.startswith("postgresql+asyncpg"):
        return {"command_timeout": settings.STORE_TIMEOUT_SECONDS}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
