"""Redis connection and the session revocation list."""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import get_settings

settings = get_settings()

REVOKED_KEY_PREFIX = "awase:session:revoked:"

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def revoke_session(jti: str, ttl_seconds: int) -> None:
    """Mark a session token id as revoked until it would have expired anyway."""
    client = await get_redis()
    await client.setex(f"{REVOKED_KEY_PREFIX}{jti}", max(ttl_seconds, 1), "1")


async def is_session_revoked(jti: str) -> bool:
    client = await get_redis()
    return await client.exists(f"{REVOKED_KEY_PREFIX}{jti}") > 0
