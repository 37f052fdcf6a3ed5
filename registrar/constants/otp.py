"""OTP-related constants."""

from typing import Final


class OTP:
    """OTP submission and polling configuration."""

    MAX_ATTEMPTS: Final[int] = 3
    SETTLE_SECONDS: Final[float] = 5.0
    POLL_INITIAL_INTERVAL: Final[float] = 1.0
    POLL_MAX_INTERVAL: Final[float] = 10.0
    POLL_TIMEOUT_SECONDS: Final[int] = 180


class ActivationStatus:
    """SMS-Activate activation status codes used with setStatus."""

    FINISHED: Final[int] = 6
    CANCELLED: Final[int] = 8
