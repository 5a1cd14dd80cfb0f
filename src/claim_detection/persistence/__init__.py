"""
Persistence layer (Redis).

- redis_client: connection pooling
- repository: ClaimRepository (Store contract + reporting queries)
"""

from claim_detection.persistence.exceptions import (
    DuplicateClassificationError,
    RepositoryError,
    UnknownMessageError,
)
from claim_detection.persistence.redis_client import RedisClient, get_async_redis_client
from claim_detection.persistence.repository import ClaimRepository

__all__ = [
    "ClaimRepository",
    "DuplicateClassificationError",
    "RedisClient",
    "RepositoryError",
    "UnknownMessageError",
    "get_async_redis_client",
]
