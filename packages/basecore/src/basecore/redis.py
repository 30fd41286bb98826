"""
Redis client utilities for basecore.

Provides lazy-initialized Redis client to avoid import-time connections.
"""

import functools
from typing import Any

import redis

from basecore.settings import get_settings


@functools.lru_cache()
def get_redis_url() -> str:
    """Get Redis URL from settings."""
    return get_settings().REDIS_URL


@functools.lru_cache()
def get_redis_client() -> redis.Redis:
    """
    Get Redis client (cached).

    This function lazily initializes the Redis client to avoid import-time connections.
    """
    url = get_redis_url()
    return redis.from_url(url, decode_responses=True)


def publish_to_stream(
    stream_name: str,
    data: dict[str, Any],
    max_len: int | None = 10000,
    client: redis.Redis | None = None,
) -> str:
    """
    Publish a message to a Redis stream.

    Args:
        stream_name: Name of the Redis stream
        data: Dictionary of field-value pairs to publish
        max_len: Maximum stream length (approximate trim)
        client: Redis client (defaults to the cached client)

    Returns:
        Message ID assigned by Redis
    """
    client = client or get_redis_client()

    # Convert all values to strings for Redis
    string_data = {k: str(v) if not isinstance(v, str) else v for k, v in data.items()}

    if max_len:
        return client.xadd(stream_name, string_data, maxlen=max_len, approximate=True)
    return client.xadd(stream_name, string_data)


def key_lock(
    key: str,
    timeout: float = 10.0,
    blocking_timeout: float = 5.0,
    client: redis.Redis | None = None,
):
    """
    Get a distributed lock guarding a single key.

    Args:
        key: Logical key being protected (the lock lives at ``lock:<key>``)
        timeout: Seconds before the lock auto-expires if never released
        blocking_timeout: Seconds to wait when acquiring
        client: Redis client (defaults to the cached client)

    Returns:
        redis.lock.Lock usable as a context manager
    """
    client = client or get_redis_client()
    return client.lock(
        f"lock:{key}",
        timeout=timeout,
        blocking_timeout=blocking_timeout,
    )
