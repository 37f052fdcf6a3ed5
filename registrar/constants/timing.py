"""Timing-related constants (timeouts, intervals, delays)."""

from typing import Final


class Timeouts:
    """Timeout values - MILLISECONDS for device waits, SECONDS noted separately."""

    # Device element waits (milliseconds)
    AGREE_BUTTON: Final[int] = 15_000
    COUNTRY_CODE_FIELD: Final[int] = 10_000
    PHONE_FIELD: Final[int] = 5_000
    SUBMIT_BUTTON: Final[int] = 5_000
    CONFIRM_DIALOG: Final[int] = 5_000
    OTP_FIELD: Final[int] = 60_000
    PROFILE_CONTROL: Final[int] = 3_000
    COMPLETION_LANDMARK: Final[int] = 20_000
    OPTIONAL_CONTROL: Final[int] = 2_000

    # Service timeouts (seconds)
    HTTP_REQUEST_SECONDS: Final[int] = 30
    ADB_COMMAND_SECONDS: Final[int] = 15
    OTP_WAIT_SECONDS: Final[int] = 180
    OTP_RACE_SECONDS: Final[int] = 180


class Delays:
    """UI interaction delays in MILLISECONDS."""

    AFTER_TAP: Final[int] = 500
    AFTER_TYPE: Final[int] = 500
    AFTER_SUBMIT: Final[int] = 2_000
    AFTER_CONFIRM: Final[int] = 1_500
    SHORT_PAUSE: Final[int] = 800
    LONG_PAUSE: Final[int] = 1_500
    INBOX_SETTLE: Final[int] = 1_000
    ADB_RECONNECT: Final[int] = 3_000
