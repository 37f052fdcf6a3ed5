"""Key-value backings for the phone store and the session cache mirror."""

import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from registrar.core.infra.redis_manager import RedisManager


class StoreBackend(ABC):
    """Abstract base class for store backends. Values are JSON-compatible."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Storage key
            value: JSON-compatible value
            ttl_seconds: Expiry in seconds, or None to keep forever
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent or expired."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key (no-op if absent)."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List live keys starting with the prefix."""
        pass

    @property
    @abstractmethod
    def is_durable(self) -> bool:
        """Check if stored data survives a process restart."""
        pass


class InMemoryBackend(StoreBackend):
    """In-memory backend (single process, lost on restart)."""

    def __init__(self):
        """Initialize in-memory backend."""
        # key -> (value, expiry as monotonic time or None)
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and expires_at <= time.monotonic()

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a JSON round-tripped copy of the value."""
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._data[key] = (json.loads(json.dumps(value, default=str)), expires_at)

    def get(self, key: str) -> Optional[Any]:
        """Return a copy of the stored value, dropping it if expired."""
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._expired(expires_at):
                del self._data[key]
                return None
            return json.loads(json.dumps(value))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            stale = [k for k, (_, expires_at) in self._data.items() if self._expired(expires_at)]
            for key in stale:
                del self._data[key]
            return sorted(k for k in self._data if k.startswith(prefix))

    @property
    def is_durable(self) -> bool:
        return False


class RedisBackend(StoreBackend):
    """Redis backend storing JSON text values."""

    def __init__(self, redis_client: Any, namespace: str = "registrar:"):
        """
        Initialize Redis backend.

        Args:
            redis_client: Redis client instance (decode_responses=True)
            namespace: Prefix applied to every key
        """
        self._redis = redis_client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        payload = json.dumps(value, default=str)
        if ttl_seconds:
            self._redis.setex(self._key(key), ttl_seconds, payload)
        else:
            self._redis.set(self._key(key), payload)

    def get(self, key: str) -> Optional[Any]:
        payload = self._redis.get(self._key(key))
        if payload is None:
            return None
        return json.loads(payload)

    def delete(self, key: str) -> None:
        self._redis.delete(self._key(key))

    def keys(self, prefix: str = "") -> List[str]:
        offset = len(self._namespace)
        found = self._redis.scan_iter(match=f"{self._namespace}{prefix}*")
        return sorted(key[offset:] for key in found)

    @property
    def is_durable(self) -> bool:
        return True


def create_backend(redis_url: Optional[str] = None) -> StoreBackend:
    """
    Select a backend: Redis when reachable, in-memory otherwise.

    Args:
        redis_url: Redis connection URL, or None

    Returns:
        Store backend instance
    """
    client = RedisManager.get_client(redis_url)
    if client is not None:
        logger.info("Phone store backed by Redis")
        return RedisBackend(client)
    logger.info("Phone store backed by process memory")
    return InMemoryBackend()
