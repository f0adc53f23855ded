"""Redis connection management for the session store."""

import asyncio
import logging

import redis.asyncio as redis

from src.shared.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


# ===================
# Redis
# ===================

_redis_pool = None


async def get_redis() -> redis.Redis:
    """Get Redis connection from pool.

    Usage:
        redis_client = await get_redis()
        await redis_client.set("key", "value")
        value = await redis_client.get("key")
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return redis.Redis(connection_pool=_redis_pool)


async def close_redis() -> None:
    """Close Redis connection pool.

    Call this on application shutdown.
    """
    global _redis_pool
    if _redis_pool is not None:
        try:
            await _redis_pool.aclose()
        except Exception as e:
            logger.warning(f"Error closing Redis pool: {e}")
        finally:
            _redis_pool = None


# ===================
# Lifecycle Helpers
# ===================


async def check_redis_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """Check Redis health with retries.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Delay between retries in seconds

    Returns:
        True if Redis is healthy, False otherwise
    """
    for attempt in range(max_retries):
        try:
            redis_client = await get_redis()
            await redis_client.ping()
            logger.debug("Redis health check passed")
            return True
        except Exception as e:
            logger.warning(f"Redis health check failed (attempt {attempt + 1}/{max_retries}): {e}")
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay)
    return False


async def startup(require_redis: bool = False) -> None:
    """Verify connections on application startup.

    The session store degrades to process memory when Redis is down, so an
    unreachable Redis only fails startup when ``require_redis`` is set.
    """
    healthy = await check_redis_health(max_retries=5, retry_delay=2.0)
    if not healthy:
        if require_redis:
            raise RuntimeError("Failed to connect to Redis after retries")
        logger.warning("Redis unavailable at startup, sessions will use memory fallback")
        return
    logger.info("Redis connection initialized successfully")


async def shutdown() -> None:
    """Close all connections on application shutdown."""
    await close_redis()
    logger.info("All connections closed")
