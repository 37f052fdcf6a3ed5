"""Centralized enum definitions for Device Registrar."""

from enum import Enum


class RegistrationStatus(str, Enum):
    """Status values of a registration session, in happy-path order."""

    PENDING = "pending"
    CHECKING_DEVICE = "checking_device"
    STARTING_AUTOMATION_SESSION = "starting_automation_session"
    AGREEING_TERMS = "agreeing_terms"
    ENTERING_COUNTRY_CODE = "entering_country_code"
    ENTERING_PHONE_NUMBER = "entering_phone_number"
    SUBMITTING_PHONE = "submitting_phone"
    CONFIRMING_PHONE_NUMBER = "confirming_phone_number"
    RESOLVING_VERIFICATION_METHOD = "resolving_verification_method"
    AWAITING_OTP_FIELD = "awaiting_otp_field"
    AWAITING_OTP_VALUE = "awaiting_otp_value"
    VERIFYING_OTP = "verifying_otp"
    SETTING_UP_PROFILE = "setting_up_profile"
    FINISHING_SETUP = "finishing_setup"
    REGISTERED = "registered"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is allowed from this status."""
        return self in TERMINAL_STATUSES

    @classmethod
    def values(cls) -> list:
        """Return list of all enum values."""
        return [e.value for e in cls]


TERMINAL_STATUSES = frozenset(
    {RegistrationStatus.REGISTERED, RegistrationStatus.FAILED, RegistrationStatus.CANCELLED}
)


class CodeType(str, Enum):
    """Classification tag of a code found in message text."""

    VERIFICATION_CODE = "verification_code"
    OTP = "otp"
    CONFIRMATION_CODE = "confirmation_code"
