"""Custom exception classes for Device Registrar."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RegistrarError(Exception):
    """Base exception for Device Registrar."""

    def __init__(
        self, message: str, recoverable: bool = True, details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize registrar error.

        Args:
            message: Error message
            recoverable: Whether the error is recoverable with retry
            details: Additional error details
        """
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
            "timestamp": self.timestamp,
        }


# Configuration Errors
class ConfigurationError(RegistrarError):
    """Configuration error occurred."""

    def __init__(
        self,
        message: str = "Configuration error",
        recoverable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, recoverable, details)


class InvalidPhoneNumberError(RegistrarError):
    """Phone number does not look like an E.164 number."""

    def __init__(self, phone_number: str):
        super().__init__(
            "Invalid phone number format. Use E.164 format (e.g., +1234567890)",
            recoverable=False,
            details={"length": len(phone_number or "")},
        )


# Device Errors
class DeviceUnreachableError(RegistrarError):
    """The target device is not connected or not in `device` state."""

    def __init__(self, device: str, message: Optional[str] = None):
        self.device = device
        super().__init__(
            message or f"Device {device} is not reachable. Make sure the emulator is running.",
            recoverable=False,
            details={"device": device},
        )


class DriverError(RegistrarError):
    """The automation server rejected or failed a command."""

    def __init__(
        self,
        message: str = "Automation driver error",
        recoverable: bool = False,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, recoverable, details)


class AutomationStepTimeoutError(RegistrarError):
    """A UI step did not find its control in time (transient, retried per step)."""

    def __init__(self, step: str, message: Optional[str] = None):
        self.step = step
        super().__init__(
            message or f"UI step '{step}' timed out",
            recoverable=True,
            details={"step": step},
        )


class ConfirmationControlNotFoundError(RegistrarError):
    """No confirmation button matched any candidate selector."""

    def __init__(self, tried_selectors: Optional[list] = None):
        self.tried_selectors = tried_selectors or []
        message = "Could not find confirmation button"
        if self.tried_selectors:
            message += f". Tried: {', '.join(self.tried_selectors)}"
        super().__init__(message, recoverable=False, details={"tried": self.tried_selectors})


# OTP Errors
class OtpFieldTimeoutError(RegistrarError):
    """The code entry field never became visible."""

    def __init__(self, timeout_ms: Optional[int] = None):
        message = "OTP input field did not appear"
        if timeout_ms:
            message += f" within {timeout_ms} ms"
        super().__init__(message, recoverable=False, details={"timeout_ms": timeout_ms})


class OtpRejectedError(RegistrarError):
    """The app refused the submitted code; the session stays ready for another one."""

    def __init__(self, session_id: str, attempts_left: int):
        self.session_id = session_id
        self.attempts_left = attempts_left
        super().__init__(
            f"Verification code rejected ({attempts_left} attempt(s) left)",
            recoverable=attempts_left > 0,
            details={"session_id": session_id, "attempts_left": attempts_left},
        )


class OtpDeliveryTimeoutError(RegistrarError):
    """The OTP source did not deliver a code within its budget."""

    def __init__(self, activation_id: str, timeout: Optional[float] = None):
        self.activation_id = activation_id
        message = f"OTP timeout for activation {activation_id}"
        if timeout is not None:
            message = f"OTP timeout after {timeout:g} seconds for activation {activation_id}"
        super().__init__(
            message,
            recoverable=False,
            details={"activation_id": activation_id, "timeout": timeout},
        )


class OtpDeliveryCancelledError(RegistrarError):
    """The OTP source reported the activation as cancelled."""

    def __init__(self, activation_id: str, raw_status: Any = None):
        self.activation_id = activation_id
        super().__init__(
            f"Activation {activation_id} cancelled or errored: {raw_status!r}",
            recoverable=False,
            details={"activation_id": activation_id},
        )


# Precondition Errors (never mutate session state)
class PreconditionViolationError(RegistrarError):
    """Requested operation is not allowed in the session's current state."""

    def __init__(
        self,
        message: str = "Precondition violated",
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.session_id = session_id
        merged = {"session_id": session_id}
        merged.update(details or {})
        super().__init__(message, recoverable=False, details=merged)


class SessionNotFoundError(PreconditionViolationError):
    """No session exists under the given id."""

    def __init__(self, session_id: str):
        super().__init__(
            "Session not found. Registration may have timed out.", session_id=session_id
        )


class AttemptsExceededError(PreconditionViolationError):
    """The session already used all of its OTP submissions."""

    def __init__(self, session_id: str, max_attempts: int):
        super().__init__(
            f"Maximum OTP attempts exceeded ({max_attempts} attempts)",
            session_id=session_id,
            details={"max_attempts": max_attempts},
        )


class InvalidSessionStateError(PreconditionViolationError):
    """The session is not in the state the operation requires."""

    def __init__(self, session_id: str, current_status: str, expected_status: str):
        self.current_status = current_status
        super().__init__(
            f"Cannot perform operation. Current status: {current_status}",
            session_id=session_id,
            details={"current_status": current_status, "expected_status": expected_status},
        )


def classify_error(error: BaseException) -> str:
    """
    Map an exception to the classification tag recorded on a session.

    Args:
        error: Exception raised during a registration run

    Returns:
        Exception class name for known errors, "UnexpectedError" otherwise
    """
    if isinstance(error, RegistrarError):
        return error.__class__.__name__
    if isinstance(error, TimeoutError):
        return "TimeoutError"
    return "UnexpectedError"
