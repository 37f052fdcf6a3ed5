"""Core infrastructure module."""

from .enums import TERMINAL_STATUSES, CodeType, RegistrationStatus
from .exceptions import (
    AttemptsExceededError,
    AutomationStepTimeoutError,
    ConfigurationError,
    ConfirmationControlNotFoundError,
    DeviceUnreachableError,
    DriverError,
    InvalidPhoneNumberError,
    InvalidSessionStateError,
    OtpDeliveryCancelledError,
    OtpDeliveryTimeoutError,
    OtpFieldTimeoutError,
    OtpRejectedError,
    PreconditionViolationError,
    RegistrarError,
    SessionNotFoundError,
    classify_error,
)
from .logger import setup_structured_logging

__all__ = [
    "RegistrationStatus",
    "TERMINAL_STATUSES",
    "CodeType",
    "RegistrarError",
    "ConfigurationError",
    "InvalidPhoneNumberError",
    "DeviceUnreachableError",
    "DriverError",
    "AutomationStepTimeoutError",
    "ConfirmationControlNotFoundError",
    "OtpFieldTimeoutError",
    "OtpDeliveryTimeoutError",
    "OtpDeliveryCancelledError",
    "OtpRejectedError",
    "PreconditionViolationError",
    "SessionNotFoundError",
    "AttemptsExceededError",
    "InvalidSessionStateError",
    "classify_error",
    "setup_structured_logging",
]
