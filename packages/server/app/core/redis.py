"""Redis connection management and login attempt throttling."""

from __future__ import annotations

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.errors import RateLimited, ServiceUnavailable

settings = get_settings()
log = structlog.get_logger()

_redis_pool: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis connection."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Login throttling (fixed window per identifier)
# ---------------------------------------------------------------------------

def _attempts_key(identifier: str) -> str:
    return f"auth:login_attempts:{identifier}"


async def register_login_attempt(identifier: str) -> int:
    """Count a login attempt; raise RateLimited once the window is exhausted."""
    client = await get_redis()
    key = _attempts_key(identifier)
    try:
        count = await client.incr(key)
        if count == 1:
            await client.expire(key, settings.login_rate_window_seconds)
    except RedisError as exc:
        log.error("ratelimit.backend_unavailable", error=str(exc))
        raise ServiceUnavailable("Login throttling backend unavailable") from exc

    if count > settings.login_rate_limit:
        log.warning("auth.login_throttled", identifier=identifier, attempts=count)
        raise RateLimited()
    return count


async def clear_login_attempts(identifier: str) -> None:
    """Reset the window after a successful login."""
    client = await get_redis()
    try:
        await client.delete(_attempts_key(identifier))
    except RedisError as exc:
        log.error("ratelimit.backend_unavailable", error=str(exc))
        raise ServiceUnavailable("Login throttling backend unavailable") from exc
