"""Persistent phone store and its key-value backings."""

from .backends import InMemoryBackend, RedisBackend, StoreBackend, create_backend
from .models import PhoneAccount, StoredMessage
from .phone_store import PhoneSessionStore
from .session_mirror import SessionCacheMirror

__all__ = [
    "StoreBackend",
    "InMemoryBackend",
    "RedisBackend",
    "create_backend",
    "PhoneAccount",
    "StoredMessage",
    "PhoneSessionStore",
    "SessionCacheMirror",
]
