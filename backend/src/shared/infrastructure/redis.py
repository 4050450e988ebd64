from redis.asyncio import ConnectionPool, Redis

from shared.config import settings

pool = ConnectionPool.from_url(
    settings.REDIS_URL,
    socket_timeout=settings.STORE_TIMEOUT_SECONDS,
    socket_connect_timeout=settings.STORE_TIMEOUT_SECONDS,
)


def get_redis_pool() -> Redis:
    return Redis(connection_pool=pool)
