"""Status event bus fanning out registration status transitions."""

import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from loguru import logger

from registrar.core.enums import RegistrationStatus

StatusHandler = Callable[["StatusEvent"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class StatusEvent:
    """One status transition of one registration session."""

    session_id: str
    status: RegistrationStatus
    error: Optional[str] = None
    error_type: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"session_id": self.session_id, "status": self.status.value}
        if self.error is not None:
            data["error"] = self.error
            data["error_type"] = self.error_type
        data["timestamp"] = self.timestamp
        return data


class StatusEventBus:
    """
    Single-writer, multi-reader publish mechanism.

    Handlers run in subscription order for every event; events are
    delivered in publish order. Nothing is retained after delivery.
    """

    def __init__(self) -> None:
        self._handlers: List[StatusHandler] = []

    def subscribe(self, handler: StatusHandler) -> Callable[[], None]:
        """
        Register a handler (sync function or coroutine function).

        Args:
            handler: Called with each StatusEvent

        Returns:
            Callable removing the subscription
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def publish(self, event: StatusEvent) -> None:
        """
        Deliver an event to every subscriber.

        A failing handler is logged and does not affect the others or the
        publisher.
        """
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Status handler {getattr(handler, '__name__', handler)!r} failed "
                    f"for {event.session_id} ({event.status.value}): {e}"
                )
