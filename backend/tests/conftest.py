import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from auth.application.services import register_user
from auth.infrastructure.user_repository import DbUserRepository
from dashboard.infrastructure.snapshot_cache import SnapshotCache
from documents.infrastructure.blob_store import LocalBlobStore
from documents.infrastructure.unit_of_work import DbUnitOfWork
from main import app
from shared.dependencies import get_blob_store, get_db, get_snapshot_cache
from shared.infrastructure.database import Base

import auth.infrastructure.models  # noqa: F401
import comments.infrastructure.models  # noqa: F401
import documents.infrastructure.models  # noqa: F401

PDF_BYTES = b"%PDF-1.4\n%test document\n"


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the snapshot cache."""

    def __init__(self):
        self.data: dict[str, bytes] = {}
        self.expiry: dict[str, int | None] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value if isinstance(value, bytes) else str(value).encode()
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                removed += 1
            self.expiry.pop(key, None)
        return removed


@pytest.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db(test_engine):
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def uow(db):
    return DbUnitOfWork(db)


@pytest.fixture
def blob_dir(tmp_path):
    return tmp_path / "blobs"


@pytest.fixture
def blobs(blob_dir):
    return LocalBlobStore(str(blob_dir), "http://test")


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return SnapshotCache(fake_redis, stale_after=30, retention=3600)


@pytest.fixture(autouse=True)
async def override_dependencies(test_engine, blobs, cache):
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def _override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override
    app.dependency_overrides[get_blob_store] = lambda: blobs
    app.dependency_overrides[get_snapshot_cache] = lambda: cache
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def make_user(db, username: str):
    return await register_user(DbUserRepository(db), username=username, password="secret123")


@pytest.fixture
async def alice(db):
    return await make_user(db, "alice")


@pytest.fixture
async def bob(db):
    return await make_user(db, "bob")


@pytest.fixture
async def carol(db):
    return await make_user(db, "carol")


async def create_user_and_get_headers(client: AsyncClient, username: str = "testuser") -> tuple[str, dict]:
    """Register a user and return their id and auth headers."""
    resp = await client.post(
        "/api/auth/register",
        json={"username": username, "password": "secret123"},
    )
    user_id = resp.json()["id"]
    resp = await client.post(
        "/api/login",
        json={"username": username, "password": "secret123"},
    )
    token = resp.json()["access_token"]
    return user_id, {"Authorization": f"Bearer {token}"}
