"""Redis connection pool."""

import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def publish_event(redis_client: object | None, channel: str, payload: str) -> None:
    """Best-effort pub/sub broadcast. Failures are logged, never raised."""
    if redis_client is None:
        return
    try:
        await redis_client.publish(channel, payload)  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish on %s", channel, exc_info=True)
