"""Registration orchestrator: the state machine driving one device."""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from loguru import logger

from registrar.core.config.settings import RegistrarSettings, get_settings
from registrar.core.enums import RegistrationStatus
from registrar.core.exceptions import (
    AttemptsExceededError,
    InvalidSessionStateError,
    OtpRejectedError,
    PreconditionViolationError,
    SessionNotFoundError,
    classify_error,
)
from registrar.core.infra.retry import run_step
from registrar.core.logger import session_id_ctx
from registrar.core.validators import derive_country_code, ensure_valid_phone, local_number
from registrar.device.adb import check_device
from registrar.device.driver import DeviceDriver, DriverSession
from registrar.services.notification.event_bus import StatusEvent, StatusEventBus
from registrar.services.session.models import StoredMessage
from registrar.services.session.phone_store import PhoneSessionStore
from registrar.utils.masking import mask_phone

from . import steps
from .models import RegistrationResult, RegistrationSession

T = TypeVar("T")

DeviceCheck = Callable[[str], Awaitable[None]]


class RegistrationOrchestrator:
    """
    Drive registrations on a single device.

    The caller guarantees that only one session occupies the device at a
    time. Every status change is persisted to the phone store and then
    published on the status bus; the two are independent, so a failing
    store write still notifies subscribers and a registration does not
    need any subscriber to be recorded.
    """

    def __init__(
        self,
        driver: DeviceDriver,
        phone_store: PhoneSessionStore,
        bus: Optional[StatusEventBus] = None,
        settings: Optional[RegistrarSettings] = None,
        device_check: Optional[DeviceCheck] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            driver: Device automation driver
            phone_store: Durable phone store
            bus: Status event bus (a private one is created if omitted)
            settings: Application settings (global settings if omitted)
            device_check: Coroutine verifying the device is reachable
                (adb check by default)
        """
        self._driver = driver
        self._store = phone_store
        self.bus = bus or StatusEventBus()
        self._settings = settings or get_settings()
        self._device_check = device_check or self._adb_check

        self._sessions: Dict[str, RegistrationSession] = {}
        # Sessions still occupying the device -> their driver session (None until opened)
        self._active: Dict[str, Optional[DriverSession]] = {}

    async def _adb_check(self, udid: str) -> None:
        await check_device(udid, self._settings.adb_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_active_session_count(self) -> int:
        return len(self._active)

    def has_session(self, session_id: str) -> bool:
        """Whether the session is still in flight on the device."""
        return session_id in self._active

    def get_session(self, session_id: str) -> Optional[RegistrationSession]:
        return self._sessions.get(session_id)

    def list_sessions(self) -> List[RegistrationSession]:
        return list(self._sessions.values())

    def purge_session(self, session_id: str) -> bool:
        """Forget a finished session; in-flight sessions are kept."""
        session = self._sessions.get(session_id)
        if session is None or not session.is_terminal:
            return False
        del self._sessions[session_id]
        return True

    # ------------------------------------------------------------------
    # Status handling
    # ------------------------------------------------------------------

    async def _transition(
        self,
        session: RegistrationSession,
        status: RegistrationStatus,
        error: Optional[BaseException] = None,
    ) -> bool:
        """Apply a status change, persist it and publish it. Terminal sessions never change."""
        if session.is_terminal:
            logger.debug(
                f"Ignoring {status.value} for {session.session_id}: already {session.status.value}"
            )
            return False

        now = datetime.now(timezone.utc)
        session.status = status
        session.updated_at = now
        if error is not None:
            session.error = str(error) or error.__class__.__name__
            session.error_type = classify_error(error)
        if status.is_terminal:
            session.completed_at = now
            self._active.pop(session.session_id, None)

        try:
            self._store.record_status(
                session.phone_number,
                session.session_id,
                status.value,
                error=session.error,
                terminal=status.is_terminal,
            )
        except Exception as e:
            logger.error(f"Failed to persist status {status.value}: {e}")

        await self.bus.publish(
            StatusEvent(
                session_id=session.session_id,
                status=status,
                error=session.error if status is RegistrationStatus.FAILED else None,
                error_type=session.error_type if status is RegistrationStatus.FAILED else None,
            )
        )
        return True

    async def _enter(self, session: RegistrationSession, status: RegistrationStatus) -> None:
        """Enter the next step's status; a session ended elsewhere aborts the walk."""
        if session.is_terminal:
            raise InvalidSessionStateError(
                session.session_id, session.status.value, status.value
            )
        await self._transition(session, status)

    async def _teardown(self, session_id: str) -> None:
        handle = self._active.get(session_id)
        if handle is None:
            return
        self._active[session_id] = None
        try:
            await self._driver.close(handle)
            logger.info("Driver session closed")
        except Exception as e:
            logger.warning(f"Error closing driver: {e}")

    async def fail_session(self, session_id: str, error: BaseException) -> None:
        """Tear down the device session and mark the session failed (no-op if terminal)."""
        session = self._sessions.get(session_id)
        if session is None:
            return
        if not session.is_terminal:
            logger.error(f"Registration failed: {error}")
        await self._teardown(session_id)
        if not await self._transition(session, RegistrationStatus.FAILED, error):
            self._active.pop(session_id, None)

    async def _run_step(self, name: str, func: Callable[[], Awaitable[T]]) -> T:
        return await run_step(
            name,
            func,
            attempts=self._settings.step_retry_attempts,
            wait_seconds=self._settings.step_retry_wait_seconds,
            backoff=self._settings.step_retry_backoff,
        )

    async def _open_driver_session(self) -> DriverSession:
        """
        Open the automation session, closing it again if the caller is
        cancelled while the server is still starting it.
        """
        opening = asyncio.ensure_future(
            self._driver.open(self._settings.device_udid, self._settings.app_package)
        )
        try:
            return await asyncio.shield(opening)
        except asyncio.CancelledError:
            try:
                handle = await opening
            except Exception as e:
                logger.debug(f"Abandoned driver session did not open: {e}")
            else:
                try:
                    await self._driver.close(handle)
                    logger.info("Closed driver session opened after cancellation")
                except Exception as e:
                    logger.warning(f"Error closing abandoned driver session: {e}")
            raise

    def _require_handle(self, session: RegistrationSession) -> DriverSession:
        handle = self._active.get(session.session_id)
        if handle is None:
            raise InvalidSessionStateError(
                session.session_id, session.status.value, "open driver session"
            )
        return handle

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_registration(
        self, session_id: str, phone_number: str, country_code: Optional[str] = None
    ) -> RegistrationResult:
        """
        Walk the UI until the app is ready to accept a code.

        Args:
            session_id: Caller-chosen identifier of the run
            phone_number: Phone number (E.164-like)
            country_code: Calling code; derived from the number when omitted

        Returns:
            Result in status awaiting_otp_value

        Raises:
            InvalidPhoneNumberError: Malformed phone number (no session is created)
            PreconditionViolationError: The session id is already taken
            RegistrarError: Any step failure, after the session was marked failed
            asyncio.CancelledError: The caller was cancelled; the session is marked cancelled
        """
        ensure_valid_phone(phone_number)
        if session_id in self._sessions:
            raise PreconditionViolationError("Session already exists", session_id=session_id)

        code = derive_country_code(phone_number, country_code)
        session = RegistrationSession(
            session_id=session_id, phone_number=phone_number, country_code=code
        )
        self._sessions[session_id] = session
        self._active[session_id] = None

        token = session_id_ctx.set(session_id)
        try:
            logger.info(f"Starting registration for {mask_phone(phone_number)}")
            self._store.attach_session(phone_number, session_id)
            await self._transition(session, RegistrationStatus.PENDING)
            await self._walk_to_code_entry(session)
            return RegistrationResult(
                session_id=session_id,
                status=session.status,
                phone_number=phone_number,
                message="Ready for OTP input",
            )
        except asyncio.CancelledError:
            await self.cancel_session(session_id)
            raise
        except Exception as e:
            await self.fail_session(session_id, e)
            raise
        finally:
            session_id_ctx.reset(token)

    async def _walk_to_code_entry(self, session: RegistrationSession) -> None:
        settings = self._settings
        driver = self._driver

        await self._enter(session, RegistrationStatus.CHECKING_DEVICE)
        await self._device_check(settings.device_udid)

        await self._enter(session, RegistrationStatus.STARTING_AUTOMATION_SESSION)
        handle = await self._open_driver_session()
        if session.is_terminal:
            await driver.close(handle)
            raise InvalidSessionStateError(
                session.session_id, session.status.value, "starting_automation_session"
            )
        self._active[session.session_id] = handle

        await self._enter(session, RegistrationStatus.AGREEING_TERMS)
        await steps.agree_terms(driver, handle)

        await self._enter(session, RegistrationStatus.ENTERING_COUNTRY_CODE)
        await self._run_step(
            "country_code", lambda: steps.enter_country_code(driver, handle, session.country_code)
        )

        await self._enter(session, RegistrationStatus.ENTERING_PHONE_NUMBER)
        digits = local_number(session.phone_number, session.country_code)
        await self._run_step("phone_number", lambda: steps.enter_phone_number(driver, handle, digits))

        await self._enter(session, RegistrationStatus.SUBMITTING_PHONE)
        await self._run_step("submit_phone", lambda: steps.submit_phone(driver, handle))

        await self._enter(session, RegistrationStatus.CONFIRMING_PHONE_NUMBER)
        await self._run_step("confirm_phone", lambda: steps.confirm_phone_number(driver, handle))

        await self._enter(session, RegistrationStatus.RESOLVING_VERIFICATION_METHOD)
        await steps.resolve_verification_method(driver, handle)

        await self._enter(session, RegistrationStatus.AWAITING_OTP_FIELD)
        await steps.wait_for_otp_field(driver, handle, settings.otp_field_timeout_ms)

        await self._enter(session, RegistrationStatus.AWAITING_OTP_VALUE)

    async def submit_otp(self, session_id: str, otp: str) -> RegistrationResult:
        """
        Type the code and finish the account setup.

        Args:
            session_id: Session in status awaiting_otp_value
            otp: The verification code

        Returns:
            Result in status registered with the number of extracted messages

        Raises:
            SessionNotFoundError: Unknown session
            AttemptsExceededError: All submissions used (checked before the status)
            InvalidSessionStateError: Session not ready for a code
            OtpRejectedError: The app refused the code; the session stays ready
                for another one while attempts remain
            RegistrarError: Any other failure, after the session was marked failed
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        max_attempts = self._settings.max_otp_attempts
        if session.otp_attempts >= max_attempts:
            raise AttemptsExceededError(session_id, max_attempts)
        if session.status is not RegistrationStatus.AWAITING_OTP_VALUE:
            raise InvalidSessionStateError(
                session_id, session.status.value, RegistrationStatus.AWAITING_OTP_VALUE.value
            )
        handle = self._require_handle(session)
        session.otp_attempts += 1

        token = session_id_ctx.set(session_id)
        try:
            await self._enter(session, RegistrationStatus.VERIFYING_OTP)
            await self._run_step("enter_otp", lambda: steps.enter_otp(self._driver, handle, otp))
            await self._driver.pause(int(self._settings.otp_settle_seconds * 1000))

            if await steps.otp_rejected(self._driver, handle):
                attempts_left = max_attempts - session.otp_attempts
                rejection = OtpRejectedError(session_id, attempts_left)
                if attempts_left <= 0:
                    raise rejection
                logger.warning(f"Code rejected, {attempts_left} attempt(s) left")
                await steps.clear_otp_field(self._driver, handle)
                await self._transition(session, RegistrationStatus.AWAITING_OTP_VALUE)
                raise rejection

            return await self._finish_setup(session, handle)
        except OtpRejectedError as e:
            if e.attempts_left <= 0:
                await self.fail_session(session_id, e)
            raise
        except Exception as e:
            await self.fail_session(session_id, e)
            raise
        finally:
            session_id_ctx.reset(token)

    async def _finish_setup(
        self, session: RegistrationSession, handle: DriverSession
    ) -> RegistrationResult:
        driver = self._driver

        await self._enter(session, RegistrationStatus.SETTING_UP_PROFILE)
        await steps.set_up_profile(driver, handle)
        await steps.skip_optional_prompts(driver, handle)

        await self._enter(session, RegistrationStatus.FINISHING_SETUP)
        await steps.check_completion(driver, handle, self._settings.completion_timeout_ms)

        messages = await steps.read_inbox(driver, handle)
        if messages:
            self._store.store_messages(session.phone_number, messages)
        else:
            logger.info("No messages found to extract")

        await self._teardown(session.session_id)
        await self._enter(session, RegistrationStatus.REGISTERED)
        logger.info(f"Registered {mask_phone(session.phone_number)}")
        return RegistrationResult(
            session_id=session.session_id,
            status=session.status,
            phone_number=session.phone_number,
            messages_extracted=len(messages),
            message="Account successfully registered",
        )

    async def cancel_session(self, session_id: str) -> bool:
        """
        Cancel a session: tear down its device session and mark it cancelled.

        Returns:
            False when the session had already ended (nothing changes)

        Raises:
            SessionNotFoundError: Unknown session
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.is_terminal:
            logger.info(f"Session {session_id} already {session.status.value}")
            return False

        await self._teardown(session_id)
        await self._transition(session, RegistrationStatus.CANCELLED)
        logger.info(f"Session {session_id} cancelled")
        return True

    async def extract_messages(self, phone_number: str) -> Optional[List[StoredMessage]]:
        """
        Re-read the inbox through the in-flight session of a phone.

        Returns:
            Messages read, or None when no session of that phone holds the device
        """
        digits = PhoneSessionStore.normalize(phone_number)
        for session_id, handle in self._active.items():
            session = self._sessions[session_id]
            if handle is not None and PhoneSessionStore.normalize(session.phone_number) == digits:
                messages = await steps.read_inbox(self._driver, handle)
                if messages:
                    self._store.store_messages(phone_number, messages)
                return messages
        logger.warning(f"No active session for phone: {mask_phone(digits)}")
        return None
