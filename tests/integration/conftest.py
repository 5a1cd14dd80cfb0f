"""Integration test fixtures (service checks and prerequisites).

Provides fixtures for checking if external services are available.
Integration tests are skipped if required services are not running.
"""

import uuid

import pytest
from redis import Redis


@pytest.fixture(scope="session")
def check_redis():
    """Check if Redis is available at localhost:6379.
    
    Skips tests if Redis is not reachable.
    """
    try:
        client = Redis.from_url("redis://localhost:6379/15")
        client.ping()
        client.close()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")


@pytest.fixture
def isolated_settings(check_redis, test_settings):
    """Settings pointing at a scratch Redis database with a unique key prefix."""
    return test_settings.model_copy(update={
        "REDIS_URL": "redis://localhost:6379/15",
        "REDIS_KEY_PREFIX": f"it-{uuid.uuid4().hex[:8]}",
    })


@pytest.fixture
def cleanup_keys(isolated_settings):
    """Delete every key written under the test prefix."""
    yield
    client = Redis.from_url(isolated_settings.REDIS_URL)
    keys = list(client.scan_iter(f"{isolated_settings.REDIS_KEY_PREFIX}:*"))
    if keys:
        client.delete(*keys)
    client.close()
