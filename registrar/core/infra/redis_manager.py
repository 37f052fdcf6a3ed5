"""Centralized Redis connection manager with singleton pattern."""

import threading
from typing import TYPE_CHECKING, Optional

from loguru import logger

from registrar.utils.masking import mask_url

if TYPE_CHECKING:
    import redis as redis_module


class RedisManager:
    """
    Singleton factory for the Redis connection backing the phone store.

    Returns None when no URL is configured or the server does not answer,
    so callers can fall back to the in-memory backend.

    Example:
        ```python
        client = RedisManager.get_client("redis://localhost:6379/0")
        if client is not None:
            client.ping()
        ```
    """

    _instance: "Optional[redis_module.Redis]" = None
    _lock = threading.Lock()
    _initialized = False

    @classmethod
    def get_client(cls, redis_url: Optional[str]) -> "Optional[redis_module.Redis]":
        """
        Get shared Redis client instance.

        Returns the same client on repeated calls (singleton).

        Args:
            redis_url: Redis connection URL, or None to disable Redis

        Returns:
            Redis client instance, or None if unavailable
        """
        if cls._initialized:
            return cls._instance

        with cls._lock:
            if cls._initialized:
                return cls._instance

            cls._instance = cls._create_client(redis_url)
            cls._initialized = True

        return cls._instance

    @classmethod
    def _create_client(cls, redis_url: Optional[str]) -> "Optional[redis_module.Redis]":
        """
        Create and ping a Redis client.

        Args:
            redis_url: Redis connection URL

        Returns:
            Redis client, or None if connection fails or URL not set
        """
        if not redis_url:
            logger.debug("REDIS_URL not set; phone store will be kept in memory")
            return None

        import redis

        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            client.ping()
        except redis.RedisError as e:
            logger.warning(
                f"RedisManager: failed to connect to Redis ({mask_url(redis_url)}): {e}. "
                "Phone store will be kept in memory."
            )
            return None

        logger.info(f"RedisManager connected: {mask_url(redis_url)}")
        return client

    @classmethod
    def reset(cls) -> None:
        """
        Reset the singleton (useful for testing and shutdown).

        Closes the existing client if present and clears the instance.
        """
        with cls._lock:
            if cls._instance is not None:
                try:
                    cls._instance.close()
                except Exception as e:
                    logger.debug(f"RedisManager: error closing client during reset: {e}")
            cls._instance = None
            cls._initialized = False
