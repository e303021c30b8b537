from typing import Optional
from redis.asyncio import Redis, from_url
from config.settings import settings

_client: Optional[Redis] = None


async def get_redis() -> Redis:
    """
    Shared Redis connection for the job store and the rate limiter.
    Created lazily on first use; pings once so startup fails fast.
    """
    global _client
    if _client is None:
        _client = from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=False,  # job documents are read back as raw JSON bytes
            socket_keepalive=True,
            health_check_interval=30,
        )
        await _client.ping()
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
