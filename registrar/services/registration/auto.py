"""Fully automatic registration: UI walk raced against OTP delivery."""

import asyncio
from typing import Iterable, Optional

from loguru import logger

from registrar.core.config.settings import RegistrarSettings, get_settings
from registrar.core.enums import RegistrationStatus
from registrar.core.exceptions import (
    OtpDeliveryCancelledError,
    OtpDeliveryTimeoutError,
    OtpFieldTimeoutError,
)
from registrar.services.notification.event_bus import StatusEvent
from registrar.services.otp_manager.poller import OTPPoller

from .models import RegistrationResult
from .orchestrator import RegistrationOrchestrator


class AutoRegistrationRunner:
    """
    Run a registration end to end with codes from an OTP source.

    Polling starts once the app has been asked for an SMS (the session
    enters resolving_verification_method). From then on the UI wait for
    the code field and the OTP poll run concurrently under one race
    budget. Whichever branch fails first ends the session and the other
    branch is cancelled; when both succeed the code is submitted. The
    activation is marked consumed only after the app accepted the code;
    a refused code ends the session and releases the activation.
    """

    def __init__(
        self,
        orchestrator: RegistrationOrchestrator,
        poller: OTPPoller,
        settings: Optional[RegistrarSettings] = None,
    ):
        self._orchestrator = orchestrator
        self._poller = poller
        self._settings = settings or get_settings()

    async def run(
        self,
        session_id: str,
        phone_number: str,
        country_code: Optional[str],
        activation_id: str,
    ) -> RegistrationResult:
        """
        Register a phone number without a human in the loop.

        Args:
            session_id: Caller-chosen identifier of the run
            phone_number: Phone number reserved at the OTP source
            country_code: Calling code (derived from the number when None)
            activation_id: OTP source activation of that number

        Returns:
            Result of the OTP submission

        Raises:
            OtpFieldTimeoutError: The code field did not appear within the race budget
            OtpDeliveryTimeoutError: No code arrived within the polling or race budget
            OtpRejectedError: The app refused the delivered code (the session is failed)
            RegistrarError: Any other failure of either branch
        """
        sms_requested = asyncio.Event()
        stop_polling = asyncio.Event()

        def on_status(event: StatusEvent) -> None:
            if (
                event.session_id == session_id
                and event.status is RegistrationStatus.RESOLVING_VERIFICATION_METHOD
            ):
                sms_requested.set()

        async def poll() -> str:
            await sms_requested.wait()
            return await self._poller.wait_for_code(
                activation_id, cancel_event=stop_polling, mark_consumed=False
            )

        unsubscribe = self._orchestrator.bus.subscribe(on_status)
        ui_task = asyncio.create_task(
            self._orchestrator.start_registration(session_id, phone_number, country_code),
            name=f"ui-{session_id}",
        )
        poll_task = asyncio.create_task(poll(), name=f"otp-{session_id}")
        try:
            code = await self._race(session_id, activation_id, ui_task, poll_task, stop_polling)
        finally:
            unsubscribe()
            unfinished = [task for task in (ui_task, poll_task) if not task.done()]
            if unfinished:
                await self._abandon(unfinished, stop_polling)

        logger.info(f"Code delivered for session {session_id}, submitting")
        try:
            result = await self._orchestrator.submit_otp(session_id, code)
        except Exception as e:
            await self._orchestrator.fail_session(session_id, e)
            await self._release_activation(activation_id)
            raise

        try:
            await self._poller.provider.mark_consumed(activation_id)
        except Exception as e:
            logger.warning(f"Could not mark activation {activation_id} consumed: {e}")
        return result

    async def _race(
        self,
        session_id: str,
        activation_id: str,
        ui_task: asyncio.Task,
        poll_task: asyncio.Task,
        stop_polling: asyncio.Event,
    ) -> str:
        loop = asyncio.get_running_loop()
        budget = self._settings.otp_race_timeout_seconds
        deadline = loop.time() + budget
        pending = {ui_task, poll_task}

        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task.cancelled():
                    error: BaseException = OtpDeliveryCancelledError(
                        activation_id, "polling cancelled"
                    )
                else:
                    error = task.exception()
                if error is None:
                    continue
                logger.warning(f"{task.get_name()} failed first: {error}")
                await self._abandon(pending, stop_polling)
                if poll_task in pending:
                    await self._release_activation(activation_id)
                await self._orchestrator.fail_session(session_id, error)
                raise error

        if pending:
            if ui_task in pending:
                error = OtpFieldTimeoutError(self._settings.otp_field_timeout_ms)
            else:
                error = OtpDeliveryTimeoutError(activation_id, budget)
            logger.warning(f"Race budget of {budget:g}s elapsed: {error}")
            await self._abandon(pending, stop_polling)
            if poll_task in pending:
                await self._release_activation(activation_id)
            await self._orchestrator.fail_session(session_id, error)
            raise error

        return poll_task.result()

    @staticmethod
    async def _abandon(tasks: Iterable[asyncio.Task], stop_polling: asyncio.Event) -> None:
        """Cancel losing branches and wait until they have unwound."""
        stop_polling.set()
        tasks = list(tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _release_activation(self, activation_id: str) -> None:
        try:
            await self._poller.provider.mark_cancelled(activation_id)
        except Exception as e:
            logger.warning(f"Could not cancel activation {activation_id}: {e}")
