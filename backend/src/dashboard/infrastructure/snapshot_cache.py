import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from dashboard.domain.entities import DashboardSnapshot

logger = logging.getLogger(__name__)

_adapter = TypeAdapter(DashboardSnapshot)


def _key(user_id: UUID) -> str:
    return f"dashboard:{user_id}"


class SnapshotCache:
    """Per-user dashboard snapshots kept in redis.

    Entries count as fresh for `stale_after` seconds and are kept for
    `retention` seconds so a stale copy can still be served when the
    store is unreachable. Cache failures are logged and treated as misses.
    """

    def __init__(self, redis: Redis, stale_after: int = 30, retention: int = 3600):
        self.redis = redis
        self.stale_after = timedelta(seconds=stale_after)
        self.retention = max(retention, stale_after)

    async def get(self, user_id: UUID) -> DashboardSnapshot | None:
        try:
            raw = await self.redis.get(_key(user_id))
        except RedisError as e:
            logger.warning("Dashboard cache read failed for %s: %s", user_id, e)
            return None
        if raw is None:
            return None
        try:
            return _adapter.validate_json(raw)
        except ValidationError as e:
            # Unreadable or written by an older release
            logger.warning("Discarding unreadable dashboard snapshot for %s: %s", user_id, e)
            return None

    async def put(self, user_id: UUID, snapshot: DashboardSnapshot) -> None:
        try:
            await self.redis.set(_key(user_id), _adapter.dump_json(snapshot), ex=self.retention)
        except RedisError as e:
            logger.warning("Dashboard cache write failed for %s: %s", user_id, e)

    async def force_refresh(self, user_id: UUID) -> None:
        try:
            await self.redis.delete(_key(user_id))
        except RedisError as e:
            logger.warning("Dashboard cache invalidation failed for %s: %s", user_id, e)

    def is_fresh(self, snapshot: DashboardSnapshot, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - snapshot.fetched_at < self.stale_after
