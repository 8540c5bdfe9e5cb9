"""Redis client factory: one-time codes and rate-limit counters only.

NOT used for balances, holds or trade state (those live in PostgreSQL).
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


def redis_key(*parts: object) -> str:
    """Build a namespaced key: redis_key("otp", "verify", email) -> "exsim:otp:verify:<email>"."""
    return ":".join(["exsim", *(str(p) for p in parts)])
