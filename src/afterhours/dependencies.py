"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from afterhours.database import get_session as _get_session
from afterhours.redis_client import get_redis as _get_redis

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object | None, None]:
    """Yield the Redis client, or None when Redis is not initialized.

    Redis only carries best-effort broadcasts, so its absence never fails a request.
    """
    try:
        client = _get_redis()
    except RuntimeError:
        client = None
    yield client
