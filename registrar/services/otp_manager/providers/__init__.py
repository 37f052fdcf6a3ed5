"""OTP source providers."""

from .base import ActivationState, OTPSourceProvider, classify_activation_status
from .sms_activate import SmsActivateError, SmsActivateProvider

__all__ = [
    "ActivationState",
    "OTPSourceProvider",
    "classify_activation_status",
    "SmsActivateError",
    "SmsActivateProvider",
]
