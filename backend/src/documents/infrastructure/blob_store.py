import logging
import re
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import PurePosixPath

import anyio
import httpx

from shared.config import Settings
from shared.exceptions import StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)

_SAFE_SUFFIX = re.compile(r"\.[a-z0-9]{1,10}")


def blob_name(filename: str, version: int) -> str:
    """One object per version: `<epoch-millis>_<random>_v<version><ext>`."""
    ext = PurePosixPath(filename or "").suffix.lower()
    if not _SAFE_SUFFIX.fullmatch(ext):
        ext = ".bin"
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_v{version}{ext}"


def _basename(url: str | None) -> str | None:
    if not url:
        return None
    name = url.rstrip("/").rsplit("/", 1)[-1]
    return name or None


class LocalBlobStore:
    """Keeps blobs in a directory that the app serves under /files."""

    def __init__(self, root: str, public_base_url: str):
        self.root = anyio.Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    async def upload(self, name: str, data: bytes, content_type: str | None = None) -> str:
        try:
            await self.root.mkdir(parents=True, exist_ok=True)
            await (self.root / name).write_bytes(data)
        except OSError as e:
            raise StoreError(f"Failed to store file {name}: {e}") from e
        return f"{self.public_base_url}/files/{name}"

    async def remove(self, names: list[str]) -> None:
        for name in names:
            try:
                await (self.root / name).unlink(missing_ok=True)
            except OSError as e:
                raise StoreError(f"Failed to remove file {name}: {e}") from e

    def name_from_url(self, url: str | None) -> str | None:
        return _basename(url)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except httpx.TimeoutException as e:
        raise StoreTimeoutError(f"Blob storage {operation} timed out") from e
    except httpx.HTTPStatusError as e:
        raise StoreError(
            f"Blob storage {operation} failed: {e.response.status_code} {e.response.text}"
        ) from e
    except httpx.HTTPError as e:
        raise StoreError(f"Blob storage {operation} failed: {e}") from e


class HttpBlobStore:
    """Client for the managed object storage REST API."""

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
            timeout=timeout,
            transport=transport,
        )

    async def upload(self, name: str, data: bytes, content_type: str | None = None) -> str:
        with _storage_errors("upload"):
            response = await self.client.post(
                f"/storage/v1/object/{self.bucket}/{name}",
                content=data,
                headers={
                    "Content-Type": content_type or "application/octet-stream",
                    "x-upsert": "false",
                },
            )
            response.raise_for_status()
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{name}"

    async def remove(self, names: list[str]) -> None:
        if not names:
            return
        with _storage_errors("remove"):
            response = await self.client.request(
                "DELETE",
                f"/storage/v1/object/{self.bucket}",
                json={"prefixes": names},
            )
            response.raise_for_status()

    def name_from_url(self, url: str | None) -> str | None:
        return _basename(url)

    async def aclose(self) -> None:
        await self.client.aclose()


def build_blob_store(settings: Settings) -> LocalBlobStore | HttpBlobStore:
    if settings.STORAGE_BACKEND == "http":
        if not settings.STORAGE_URL:
            raise ValueError("STORAGE_URL is required when STORAGE_BACKEND=http")
        logger.info("Using object storage at %s (bucket %s)", settings.STORAGE_URL, settings.STORAGE_BUCKET)
        return HttpBlobStore(
            settings.STORAGE_URL,
            settings.STORAGE_BUCKET,
            settings.STORAGE_API_KEY,
            timeout=settings.STORE_TIMEOUT_SECONDS,
        )
    logger.info("Using local blob storage in %s", settings.STORAGE_DIR)
    return LocalBlobStore(settings.STORAGE_DIR, settings.PUBLIC_BASE_URL)
