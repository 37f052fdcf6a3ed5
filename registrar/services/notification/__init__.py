"""Status notification fan-out."""

from .event_bus import StatusEvent, StatusEventBus, StatusHandler

__all__ = ["StatusEvent", "StatusEventBus", "StatusHandler"]
