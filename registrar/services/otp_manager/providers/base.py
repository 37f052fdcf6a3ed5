"""OTP source provider capability."""

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

_WAIT = re.compile(r"wait", re.IGNORECASE)
_CANCEL = re.compile(r"cancel", re.IGNORECASE)

# Error bodies after which the activation can never deliver a code
_TERMINAL_ERRORS = frozenset(
    {"NO_ACTIVATION", "WRONG_ACTIVATION_ID", "BAD_KEY", "BAD_ACTION", "BAD_SERVICE", "ERROR_SQL"}
)


class ActivationState(str, Enum):
    """Coarse classification of a provider status response."""

    WAITING = "waiting"
    CANCELLED = "cancelled"
    ERROR = "error"
    UNKNOWN = "unknown"


class OTPSourceProvider(ABC):
    """Reports delivery status of an activation and accepts its final status."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs."""

    @abstractmethod
    async def get_status(self, activation_id: str) -> Any:
        """Return the raw status: a string or a structured payload."""

    @abstractmethod
    async def mark_consumed(self, activation_id: str) -> None:
        """Tell the provider the delivered code was used."""

    @abstractmethod
    async def mark_cancelled(self, activation_id: str) -> None:
        """Tell the provider the reservation is abandoned."""

    async def aclose(self) -> None:
        """Release provider resources."""


def classify_activation_status(raw_status: Any) -> ActivationState:
    """
    Classify a status response that carried no code.

    Args:
        raw_status: String or dict returned by the provider

    Returns:
        WAITING, CANCELLED, ERROR (the provider refuses the activation) or UNKNOWN
    """
    if isinstance(raw_status, dict):
        code = str(raw_status.get("code") or raw_status.get("status") or "")
        message = str(
            raw_status.get("message") or raw_status.get("text") or raw_status.get("sms") or ""
        )
    else:
        code = message = str(raw_status or "")

    if code.startswith("STATUS_CANCEL") or _CANCEL.search(message):
        return ActivationState.CANCELLED
    if code.split(":", 1)[0].strip().upper() in _TERMINAL_ERRORS:
        return ActivationState.ERROR
    if code.startswith("STATUS_WAIT") or _WAIT.search(message):
        return ActivationState.WAITING
    return ActivationState.UNKNOWN
