"""UI steps of the registration flow.

Every function drives one screen through the DeviceDriver capability.
Required steps raise AutomationStepTimeoutError when their control does
not show up in time, so the orchestrator can retry them; optional steps
swallow RegistrarError and report whether they did anything.
"""

import random
from typing import Awaitable, Callable, List, Optional, TypeVar

from loguru import logger

from registrar.constants import Delays, Timeouts
from registrar.core.exceptions import (
    AutomationStepTimeoutError,
    ConfirmationControlNotFoundError,
    OtpFieldTimeoutError,
    RegistrarError,
)
from registrar.device import ui_map
from registrar.device.driver import (
    FIND_POLL_MS,
    DeviceDriver,
    DriverSession,
    ElementHandle,
    find_first_visible,
    wait_for_element,
)
from registrar.device.selectors import Selector
from registrar.services.session.models import StoredMessage
from registrar.utils.masking import mask_otp

T = TypeVar("T")

SMS_OPTION_ROUNDS = 4


async def _require(
    driver: DeviceDriver,
    session: DriverSession,
    selector: Selector,
    timeout_ms: int,
    step: str,
) -> ElementHandle:
    element = await wait_for_element(driver, session, selector, timeout_ms)
    if element is None:
        raise AutomationStepTimeoutError(step, f"{selector.describe()} not visible for step '{step}'")
    return element


async def _optional(label: str, action: Callable[[], Awaitable[T]]) -> Optional[T]:
    try:
        return await action()
    except RegistrarError as e:
        logger.info(f"Optional step '{label}' skipped: {e}")
        return None


async def _tap_first(
    driver: DeviceDriver, session: DriverSession, candidates, label: str, pause_ms: int
) -> bool:
    found = await find_first_visible(driver, session, candidates, Timeouts.OPTIONAL_CONTROL)
    if found is None:
        return False
    selector, element = found
    logger.info(f"Tapping {label} via {selector.describe()}")
    await driver.click(element)
    await driver.pause(pause_ms)
    return True


async def agree_terms(driver: DeviceDriver, session: DriverSession) -> bool:
    """Accept the terms screen; False when it was not shown (already accepted)."""
    element = await wait_for_element(driver, session, ui_map.AGREE_BUTTON, Timeouts.AGREE_BUTTON)
    if element is None:
        logger.info("Agree step skipped or already accepted")
        return False
    await driver.click(element)
    await driver.pause(Delays.AFTER_SUBMIT)
    return True


async def enter_country_code(
    driver: DeviceDriver, session: DriverSession, country_code: str
) -> None:
    field = await _require(
        driver, session, ui_map.COUNTRY_CODE_FIELD, Timeouts.COUNTRY_CODE_FIELD, "country_code"
    )
    await driver.click(field)
    await driver.pause(Delays.AFTER_TAP)
    await driver.clear_text(field)
    await driver.pause(Delays.AFTER_TAP)
    await driver.set_text(field, country_code)
    await driver.pause(Delays.AFTER_TYPE)
    logger.info(f"Country code entered: {country_code}")


async def enter_phone_number(
    driver: DeviceDriver, session: DriverSession, local_number: str
) -> None:
    field = await _require(driver, session, ui_map.PHONE_FIELD, Timeouts.PHONE_FIELD, "phone_number")
    await driver.click(field)
    await driver.pause(Delays.AFTER_TAP)
    await driver.set_text(field, local_number)
    await driver.pause(Delays.AFTER_TYPE)


async def submit_phone(driver: DeviceDriver, session: DriverSession) -> None:
    button = await _require(
        driver, session, ui_map.SUBMIT_BUTTON, Timeouts.SUBMIT_BUTTON, "submit_phone"
    )
    await driver.click(button)
    await driver.pause(Delays.AFTER_SUBMIT)


async def confirm_phone_number(driver: DeviceDriver, session: DriverSession) -> Selector:
    """
    Accept the "is this number correct?" dialog.

    Candidates are re-evaluated until the dialog budget is spent.

    Returns:
        The selector that matched

    Raises:
        ConfirmationControlNotFoundError: No candidate became visible
    """
    waited = 0
    while True:
        found = await find_first_visible(
            driver, session, ui_map.CONFIRM_CANDIDATES, Timeouts.OPTIONAL_CONTROL
        )
        if found is not None:
            selector, element = found
            await driver.click(element)
            await driver.pause(Delays.AFTER_CONFIRM)
            logger.info(f"Confirmed via selector: {selector.describe()}")
            return selector
        if waited >= Timeouts.CONFIRM_DIALOG:
            raise ConfirmationControlNotFoundError(
                [candidate.describe() for candidate in ui_map.CONFIRM_CANDIDATES]
            )
        await driver.pause(FIND_POLL_MS)
        waited += FIND_POLL_MS


async def _open_other_methods(driver: DeviceDriver, session: DriverSession) -> bool:
    if await _tap_first(
        driver, session, ui_map.VERIFY_ANOTHER_WAY_CANDIDATES, "'verify another way'",
        Delays.LONG_PAUSE,
    ):
        return True

    # Some builds hide the options behind an intermediate Continue screen
    if not await _tap_first(
        driver, session, ui_map.FINAL_CONTINUE_CANDIDATES[:2], "'Continue'", Delays.LONG_PAUSE
    ):
        return False
    return await _tap_first(
        driver, session, ui_map.VERIFY_ANOTHER_WAY_CANDIDATES, "'verify another way'",
        Delays.LONG_PAUSE,
    )


async def _select_sms_option(driver: DeviceDriver, session: DriverSession) -> bool:
    for attempt in range(1, SMS_OPTION_ROUNDS + 1):
        found = await find_first_visible(
            driver, session, ui_map.SMS_OPTION_CANDIDATES, Timeouts.OPTIONAL_CONTROL
        )
        if found is not None:
            selector, element = found
            logger.info(f"Selecting SMS verification via {selector.describe()}")
            await driver.click(element)
            await driver.pause(Delays.LONG_PAUSE)
            return True
        logger.info(f"SMS option not found (attempt {attempt}/{SMS_OPTION_ROUNDS})")
        await driver.pause(Delays.INBOX_SETTLE * attempt)

    voice = await find_first_visible(
        driver, session, ui_map.VOICE_OPTION_CANDIDATES, Timeouts.OPTIONAL_CONTROL
    )
    if voice is not None:
        logger.warning(f"Only a call option is offered ({voice[0].describe()}); not selecting it")
    return False


async def resolve_verification_method(driver: DeviceDriver, session: DriverSession) -> bool:
    """
    Steer the app to SMS delivery when it offers other verification methods.

    Never raises for missing controls: the default path already asked for
    an SMS.

    Returns:
        True when an SMS option was selected and confirmed
    """

    async def negotiate() -> bool:
        await driver.pause(Delays.SHORT_PAUSE)
        if not await _open_other_methods(driver, session):
            logger.info("No alternate verification methods offered")
            return False
        if not await _select_sms_option(driver, session):
            return False
        if not await _tap_first(
            driver, session, ui_map.FINAL_CONTINUE_CANDIDATES, "final continue", Delays.LONG_PAUSE
        ):
            logger.info("No final continue control after selecting SMS")
        return True

    return bool(await _optional("resolve_verification_method", negotiate))


async def wait_for_otp_field(
    driver: DeviceDriver, session: DriverSession, timeout_ms: int
) -> ElementHandle:
    """
    Wait until the code entry field is displayed.

    Raises:
        OtpFieldTimeoutError: The field did not appear within timeout_ms
    """
    field = await wait_for_element(driver, session, ui_map.OTP_FIELD, timeout_ms)
    if field is None:
        raise OtpFieldTimeoutError(timeout_ms)
    logger.info("OTP input screen detected, ready for OTP")
    return field


async def enter_otp(driver: DeviceDriver, session: DriverSession, otp: str) -> None:
    field = await _require(driver, session, ui_map.OTP_FIELD, Timeouts.PHONE_FIELD, "enter_otp")
    await driver.set_text(field, otp)
    await driver.pause(Delays.AFTER_TYPE)
    logger.info(f"OTP entered: {mask_otp(otp)}")


async def otp_rejected(driver: DeviceDriver, session: DriverSession) -> bool:
    """Whether the app shows a wrong-code notice under the code field."""
    found = await _optional(
        "otp_rejected_check",
        lambda: find_first_visible(
            driver, session, ui_map.OTP_REJECTED_CANDIDATES, Timeouts.OPTIONAL_CONTROL
        ),
    )
    return found is not None


async def clear_otp_field(driver: DeviceDriver, session: DriverSession) -> None:
    async def clear() -> None:
        field = await driver.find_element(session, ui_map.OTP_FIELD)
        if field is not None:
            await driver.clear_text(field)

    await _optional("clear_otp_field", clear)


async def set_up_profile(
    driver: DeviceDriver, session: DriverSession, name: Optional[str] = None
) -> Optional[str]:
    """
    Fill the profile name screen if it is shown.

    Returns:
        The name entered, or None when the screen was not there
    """
    display_name = name or random.choice(ui_map.PROFILE_NAMES)

    async def fill() -> Optional[str]:
        field = await wait_for_element(
            driver, session, ui_map.NAME_FIELD, Timeouts.PROFILE_CONTROL
        )
        if field is None:
            logger.info("No name input field found")
            return None
        await driver.click(field)
        await driver.pause(Delays.AFTER_TAP)
        await driver.clear_text(field)
        await driver.set_text(field, display_name)
        await driver.pause(Delays.AFTER_TYPE)
        logger.info(f"Entered profile name: {display_name}")
        if not await _tap_first(driver, session, ui_map.DONE_CANDIDATES, "'Done'", Delays.AFTER_SUBMIT):
            logger.info("No Done button found after name entry")
        return display_name

    return await _optional("set_up_profile", fill)


async def skip_optional_prompts(driver: DeviceDriver, session: DriverSession) -> List[str]:
    """Dismiss the profile picture and backup prompts; returns what was skipped."""
    skipped = []
    for label, candidates in (
        ("picture", ui_map.PICTURE_SKIP_CANDIDATES),
        ("backup", ui_map.SKIP_CANDIDATES),
    ):
        tapped = await _optional(
            f"skip_{label}",
            lambda c=candidates, lbl=label: _tap_first(
                driver, session, c, f"skip {lbl}", Delays.AFTER_SUBMIT
            ),
        )
        if tapped:
            skipped.append(label)
    return skipped


async def check_completion(driver: DeviceDriver, session: DriverSession, timeout_ms: int) -> bool:
    """Look for the post-registration landmark; absence is only logged."""
    landmark = await _optional(
        "check_completion",
        lambda: wait_for_element(driver, session, ui_map.COMPLETION_LANDMARK, timeout_ms),
    )
    if landmark is None:
        logger.info("Registration may be complete (completion landmark not found)")
        return False
    logger.info("Registration completion landmark visible")
    return True


async def read_inbox(driver: DeviceDriver, session: DriverSession) -> List[StoredMessage]:
    """
    Read every visible inbox line.

    Lines that fail to read or are blank are left out; the index is the
    line's position on screen.
    """
    await driver.pause(Delays.INBOX_SETTLE)
    elements = await driver.list_elements(session, ui_map.INBOX_LINE)
    logger.info(f"Found {len(elements)} message elements")

    messages = []
    for position, element in enumerate(elements):
        try:
            text = await driver.get_text(element)
        except RegistrarError as e:
            logger.warning(f"Failed to read message {position}: {e}")
            continue
        if text and text.strip():
            messages.append(StoredMessage(index=position, text=text))
    return messages
