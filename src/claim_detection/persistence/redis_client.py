"""
Redis client with connection pooling for the persistence layer.

The API process shares one async pool; Celery tasks run their own event
loop per task and use a short-lived client (see tasks.processing_tasks).
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis

from claim_detection.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client wrapper with a process-wide async connection pool.
    """
    
    _async_pool: Optional[AsyncConnectionPool] = None
    
    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get asynchronous Redis client with connection pooling.
        
        Args:
            settings: Application settings
        
        Returns:
            AsyncRedis client instance
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            logger.info("Initialized Redis async connection pool")
        
        return AsyncRedis(connection_pool=cls._async_pool)
    
    @classmethod
    def create_standalone_client(cls, settings: Settings) -> AsyncRedis:
        """
        Create an unpooled client bound to the current event loop.
        
        The caller owns it and must close it (aclose()).
        """
        return AsyncRedis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
    
    @classmethod
    async def close_async_pool(cls):
        """Close async connection pool (cleanup on shutdown)."""
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis async connection pool")


async def get_async_redis_client(settings: Settings) -> AsyncRedis:
    """
    Dependency injection helper for async Redis client.
    
    Args:
        settings: Application settings
    
    Returns:
        AsyncRedis client instance
    """
    return RedisClient.get_async_client(settings)
