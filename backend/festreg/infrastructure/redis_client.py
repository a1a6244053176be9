"""
Redis client for the identity revocation list.
Separated from business logic for clean architecture.

Redis is advisory: if it is disabled or unreachable the application runs
without it and callers fail open.
"""

from typing import Optional

import redis.asyncio as redis

from festreg.core.config import Settings
from festreg.core.logging import get_logger

logger = get_logger(__name__)


async def create_redis(settings: Settings) -> Optional[redis.Redis]:
    """Connect and ping. Returns None if Redis is disabled or unavailable."""
    if not settings.REDIS_ENABLED:
        return None

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        health_check_interval=30,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("redis_connection_failed", error=str(e))
        await client.aclose()
        return None

    logger.info("redis_connected", url=settings.REDIS_URL)
    return client


async def close_redis(client: Optional[redis.Redis]) -> None:
    if client is not None:
        await client.aclose()


async def redis_status(client: Optional[redis.Redis]) -> dict:
    """Connection state for the health endpoint."""
    if client is None:
        return {"status": "disabled"}
    try:
        await client.ping()
        return {"status": "connected"}
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
