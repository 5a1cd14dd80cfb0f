"""
Unit tests for Redis client and connection pooling.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from claim_detection.config import Settings
from claim_detection.persistence.redis_client import RedisClient, get_async_redis_client


@pytest.fixture
def mock_settings():
    """Mock settings for testing."""
    settings = MagicMock(spec=Settings)
    settings.REDIS_URL = "redis://localhost:6379/0"
    settings.REDIS_MAX_CONNECTIONS = 50
    return settings


@pytest.fixture(autouse=True)
def reset_pools():
    """Reset connection pools before each test."""
    RedisClient._async_pool = None
    yield
    RedisClient._async_pool = None


def test_get_async_client_creates_pool(mock_settings):
    """Test that async client creates connection pool on first call."""
    with patch("claim_detection.persistence.redis_client.AsyncConnectionPool") as mock_pool, \
            patch("claim_detection.persistence.redis_client.AsyncRedis") as mock_redis:
        mock_pool.from_url.return_value = MagicMock()
        
        RedisClient.get_async_client(mock_settings)
        RedisClient.get_async_client(mock_settings)
        
        # Pool should be created only once
        mock_pool.from_url.assert_called_once_with(
            mock_settings.REDIS_URL,
            max_connections=mock_settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
            retry_on_timeout=True,
        )
        assert mock_redis.call_count == 2
        mock_redis.assert_called_with(connection_pool=mock_pool.from_url.return_value)


def test_standalone_client_is_not_pooled(mock_settings):
    with patch("claim_detection.persistence.redis_client.AsyncRedis") as mock_redis:
        RedisClient.create_standalone_client(mock_settings)
        
        mock_redis.from_url.assert_called_once_with(
            mock_settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_close_async_pool():
    """Test closing async connection pool."""
    mock_pool = MagicMock()
    mock_pool.disconnect = AsyncMock()
    RedisClient._async_pool = mock_pool
    
    await RedisClient.close_async_pool()
    
    mock_pool.disconnect.assert_awaited_once()
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_close_async_pool_without_pool():
    await RedisClient.close_async_pool()
    
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_get_async_redis_client_helper(mock_settings):
    with patch.object(RedisClient, "get_async_client") as mock_get:
        client = await get_async_redis_client(mock_settings)
    
    mock_get.assert_called_once_with(mock_settings)
    assert client is mock_get.return_value
