"""Registration state machine and the automatic OTP race."""

from .auto import AutoRegistrationRunner
from .models import RegistrationResult, RegistrationSession
from .orchestrator import RegistrationOrchestrator

__all__ = [
    "AutoRegistrationRunner",
    "RegistrationOrchestrator",
    "RegistrationResult",
    "RegistrationSession",
]
