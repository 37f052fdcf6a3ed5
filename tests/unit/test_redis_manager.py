"""Unit tests for registrar/core/infra/redis_manager.py."""

from unittest.mock import MagicMock, patch

import pytest
import redis

from registrar.core.infra.redis_manager import RedisManager
from registrar.services.session.backends import InMemoryBackend, RedisBackend, create_backend


@pytest.fixture(autouse=True)
def reset_redis_manager():
    """Reset RedisManager singleton state before and after each test."""
    RedisManager.reset()
    yield
    RedisManager.reset()


# ── Singleton behavior ────────────────────────────────────────────────────────


def test_get_client_returns_none_without_url():
    assert RedisManager.get_client(None) is None


def test_get_client_singleton_same_instance():
    mock_client = MagicMock()
    with patch("redis.from_url", return_value=mock_client) as from_url:
        c1 = RedisManager.get_client("redis://localhost:6379")
        c2 = RedisManager.get_client("redis://localhost:6379")
    assert c1 is c2
    assert c1 is mock_client
    from_url.assert_called_once()
    mock_client.ping.assert_called_once()


def test_get_client_returns_none_when_ping_fails():
    mock_client = MagicMock()
    mock_client.ping.side_effect = redis.ConnectionError("refused")
    with patch("redis.from_url", return_value=mock_client):
        assert RedisManager.get_client("redis://localhost:6379") is None


def test_reset_closes_client():
    mock_client = MagicMock()
    with patch("redis.from_url", return_value=mock_client):
        RedisManager.get_client("redis://localhost:6379")
    RedisManager.reset()
    mock_client.close.assert_called_once()

    with patch("redis.from_url", return_value=MagicMock()) as from_url:
        RedisManager.get_client("redis://localhost:6379")
    from_url.assert_called_once()


def test_reset_swallows_close_errors():
    mock_client = MagicMock()
    mock_client.close.side_effect = redis.ConnectionError("gone")
    with patch("redis.from_url", return_value=mock_client):
        RedisManager.get_client("redis://localhost:6379")
    RedisManager.reset()
    assert RedisManager.get_client(None) is None


# ── Backend selection ─────────────────────────────────────────────────────────


def test_create_backend_without_redis_is_in_memory():
    backend = create_backend(None)
    assert isinstance(backend, InMemoryBackend)
    assert backend.is_durable is False


def test_create_backend_with_redis():
    with patch("redis.from_url", return_value=MagicMock()):
        backend = create_backend("redis://localhost:6379")
    assert isinstance(backend, RedisBackend)
    assert backend.is_durable is True
