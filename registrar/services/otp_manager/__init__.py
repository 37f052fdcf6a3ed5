"""OTP acquisition: code extraction, provider capability and polling loop."""

from .pattern_matcher import (
    CodeMatch,
    VerificationCodeExtractor,
    extract_activation_code,
    extract_verification_code,
    parse_messages,
)
from .poller import OTPPoller
from .providers import (
    ActivationState,
    OTPSourceProvider,
    SmsActivateProvider,
    classify_activation_status,
)

__all__ = [
    "CodeMatch",
    "VerificationCodeExtractor",
    "extract_activation_code",
    "extract_verification_code",
    "parse_messages",
    "OTPPoller",
    "ActivationState",
    "OTPSourceProvider",
    "SmsActivateProvider",
    "classify_activation_status",
]
