"""Unified constants and configuration values for Device Registrar.

All classes can be imported directly from this package:
    from registrar.constants import Timeouts, Delays, OTP
"""

from .otp import OTP, ActivationStatus
from .timing import Delays, Timeouts

__all__ = [
    "Timeouts",
    "Delays",
    "OTP",
    "ActivationStatus",
]
