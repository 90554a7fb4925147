"""Redis client configuration (KPI job queue backend)."""

import os
from typing import Optional
from urllib.parse import urlparse

import redis

from insight_api.config.env import get_redis_url


class RedisClient:
    """Singleton Redis client."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """
        Get Redis client instance.

        - REDIS_URL (e.g., redis://host:6379/0 or rediss://...)
        - REDIS_PASSWORD: applied only if the URL has no password

        Returns:
            redis.Redis: Redis client
        """
        if cls._instance is None:
            redis_url = get_redis_url()
            redis_password = os.getenv("REDIS_PASSWORD")

            kwargs = {
                "decode_responses": True,
                "socket_connect_timeout": 5,
                # BRPOP blocks up to the dequeue timeout; keep socket timeout above it
                "socket_timeout": 30,
                "health_check_interval": 30,
            }

            if not urlparse(redis_url).password and redis_password:
                kwargs["password"] = redis_password

            cls._instance = redis.from_url(redis_url, **kwargs)

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset Redis client (for testing)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None


def get_redis() -> redis.Redis:
    """
    Get Redis client for dependency injection.

    Returns:
        redis.Redis: Redis client
    """
    return RedisClient.get_client()
