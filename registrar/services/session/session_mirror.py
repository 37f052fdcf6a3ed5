"""Short-lived cache mirror of session status, fed by the status bus."""

from typing import Any, Callable, Dict, Optional

from loguru import logger

from registrar.services.notification.event_bus import StatusEvent, StatusEventBus

from .backends import StoreBackend

SESSION_KEY_PREFIX = "session:"


class SessionCacheMirror:
    """
    Status-bus subscriber keeping ``session:<id>`` up to date with a TTL.

    The mirror is a convenience for readers outside the orchestrator; a
    failed write is logged and dropped.
    """

    def __init__(self, backend: StoreBackend, ttl_seconds: int = 900):
        self._backend = backend
        self._ttl = ttl_seconds
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self, bus: StatusEventBus) -> None:
        """Subscribe to a status bus (once)."""
        if self._unsubscribe is None:
            self._unsubscribe = bus.subscribe(self.handle)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, event: StatusEvent) -> None:
        try:
            self._backend.set(f"{SESSION_KEY_PREFIX}{event.session_id}", event.to_dict(), self._ttl)
        except Exception as e:
            logger.warning(f"Session cache mirror write failed for {event.session_id}: {e}")

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Latest mirrored snapshot of a session, if not expired."""
        return self._backend.get(f"{SESSION_KEY_PREFIX}{session_id}")
