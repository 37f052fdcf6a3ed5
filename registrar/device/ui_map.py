"""Named controls of the messaging app's registration screens."""

from typing import Final, Tuple

from .selectors import ByAccessibilityDescription, ByResourceId, ByText, ByTextContains, Selector

_PKG = "com.whatsapp"

AGREE_BUTTON: Final = ByResourceId(f"{_PKG}:id/eula_accept")
COUNTRY_CODE_FIELD: Final = ByResourceId(f"{_PKG}:id/registration_cc")
PHONE_FIELD: Final = ByResourceId(f"{_PKG}:id/registration_phone")
SUBMIT_BUTTON: Final = ByResourceId(f"{_PKG}:id/registration_submit")
OTP_FIELD: Final = ByResourceId(f"{_PKG}:id/verify_sms_code_input")
NAME_FIELD: Final = ByResourceId(f"{_PKG}:id/registration_name")
INBOX_LINE: Final = ByResourceId(f"{_PKG}:id/chat_list_item_line")
COMPLETION_LANDMARK: Final = ByAccessibilityDescription("New chat")

CONFIRM_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByText("Yes"),
    ByTextContains("Yes"),
    ByText("OK"),
    ByResourceId("android:id/button1"),
)

VERIFY_ANOTHER_WAY_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByTextContains("Verify another way"),
    ByTextContains("Verify another"),
    ByTextContains("verify another"),
    ByTextContains("other way"),
    ByTextContains("Use another"),
    ByTextContains("Other ways"),
)

# SMS/text first; voice and call options are last-resort candidates only
SMS_OPTION_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByTextContains("Receive SMS"),
    ByTextContains("receive sms"),
    ByTextContains("Receive text"),
    ByTextContains("text message"),
    ByTextContains("SMS"),
)

VOICE_OPTION_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByTextContains("Missed call"),
    ByTextContains("Voice call"),
)

FINAL_CONTINUE_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByText("Continue"),
    ByTextContains("Continue"),
    ByTextContains("Confirm"),
    ByTextContains("Done"),
)

DONE_CANDIDATES: Final[Tuple[Selector, ...]] = (ByText("Done"), ByText("Next"))

PICTURE_SKIP_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByTextContains("Skip photo"),
    ByText("Not now"),
)

SKIP_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByTextContains("Skip"),
    ByText("Not now"),
)

# Shown under the code field when the app refuses a submitted code
OTP_REJECTED_CANDIDATES: Final[Tuple[Selector, ...]] = (
    ByTextContains("Wrong code"),
    ByTextContains("wrong code"),
    ByTextContains("incorrect"),
    ByTextContains("Invalid code"),
)

PROFILE_NAMES: Final[Tuple[str, ...]] = (
    "Sofia",
    "Marco",
    "Yuki",
    "Amara",
    "Chen",
    "Lara",
    "Ahmed",
    "Priya",
)
