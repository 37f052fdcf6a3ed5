"""Tests for the status event bus and the session cache mirror."""

from unittest.mock import MagicMock

import pytest

from registrar.core.enums import RegistrationStatus
from registrar.services.notification.event_bus import StatusEvent, StatusEventBus
from registrar.services.session.backends import InMemoryBackend
from registrar.services.session.session_mirror import SessionCacheMirror


class TestStatusEventBus:
    """Tests for fan-out semantics."""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers_receive_events_in_order(self):
        bus = StatusEventBus()
        seen = []

        async def async_handler(event):
            seen.append(("async", event.status))

        bus.subscribe(lambda event: seen.append(("sync", event.status)))
        bus.subscribe(async_handler)

        await bus.publish(StatusEvent("s1", RegistrationStatus.PENDING))
        await bus.publish(StatusEvent("s1", RegistrationStatus.CHECKING_DEVICE))

        assert seen == [
            ("sync", RegistrationStatus.PENDING),
            ("async", RegistrationStatus.PENDING),
            ("sync", RegistrationStatus.CHECKING_DEVICE),
            ("async", RegistrationStatus.CHECKING_DEVICE),
        ]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        bus = StatusEventBus()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        await bus.publish(StatusEvent("s1", RegistrationStatus.FAILED, error="boom"))
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = StatusEventBus()
        received = []
        unsubscribe = bus.subscribe(received.append)
        assert bus.subscriber_count == 1

        unsubscribe()
        unsubscribe()
        await bus.publish(StatusEvent("s1", RegistrationStatus.PENDING))

        assert received == []
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        await StatusEventBus().publish(StatusEvent("s1", RegistrationStatus.PENDING))

    def test_event_to_dict(self):
        event = StatusEvent(
            "s1", RegistrationStatus.FAILED, error="boom", error_type="DriverError", timestamp="t"
        )
        assert event.to_dict() == {
            "session_id": "s1",
            "status": "failed",
            "error": "boom",
            "error_type": "DriverError",
            "timestamp": "t",
        }
        assert "error" not in StatusEvent("s1", RegistrationStatus.PENDING).to_dict()


class TestSessionCacheMirror:
    """Tests for the TTL mirror subscriber."""

    @pytest.mark.asyncio
    async def test_mirrors_latest_status(self):
        bus = StatusEventBus()
        mirror = SessionCacheMirror(InMemoryBackend(), ttl_seconds=60)
        mirror.attach(bus)
        mirror.attach(bus)
        assert bus.subscriber_count == 1

        await bus.publish(StatusEvent("s1", RegistrationStatus.PENDING))
        await bus.publish(StatusEvent("s1", RegistrationStatus.AGREEING_TERMS))

        assert mirror.get("s1")["status"] == "agreeing_terms"

        mirror.detach()
        assert bus.subscriber_count == 0

    def test_write_uses_ttl(self):
        backend = MagicMock()
        SessionCacheMirror(backend, ttl_seconds=900).handle(
            StatusEvent("s1", RegistrationStatus.PENDING, timestamp="t")
        )
        backend.set.assert_called_once_with(
            "session:s1", {"session_id": "s1", "status": "pending", "timestamp": "t"}, 900
        )

    def test_write_failure_is_swallowed(self):
        backend = MagicMock()
        backend.set.side_effect = ConnectionError("redis down")
        SessionCacheMirror(backend).handle(StatusEvent("s1", RegistrationStatus.PENDING))
