"""Polling loop waiting for an OTP provider to deliver a code."""

import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from registrar.constants import OTP
from registrar.core.exceptions import OtpDeliveryCancelledError, OtpDeliveryTimeoutError
from registrar.utils.masking import mask_otp

from .pattern_matcher import extract_activation_code
from .providers.base import ActivationState, OTPSourceProvider, classify_activation_status

_TERMINAL_STATES = (ActivationState.CANCELLED, ActivationState.ERROR)


class OTPPoller:
    """Polls an OTP source at an escalating interval until a code arrives."""

    def __init__(
        self,
        provider: OTPSourceProvider,
        timeout_seconds: float = OTP.POLL_TIMEOUT_SECONDS,
        initial_interval: float = OTP.POLL_INITIAL_INTERVAL,
        max_interval: float = OTP.POLL_MAX_INTERVAL,
    ):
        """
        Initialize OTP poller.

        Args:
            provider: OTP source provider
            timeout_seconds: Total polling budget
            initial_interval: First wait between polls; each later wait grows by
                the same amount
            max_interval: Cap on the wait between polls
        """
        self._provider = provider
        self._timeout = timeout_seconds
        self._initial_interval = initial_interval
        self._max_interval = max_interval

    @property
    def provider(self) -> OTPSourceProvider:
        return self._provider

    def interval_for(self, attempt: int) -> float:
        """Wait after the given (1-based) attempt."""
        return min(self._initial_interval * attempt, self._max_interval)

    async def _best_effort(
        self, action: Callable[[str], Awaitable[None]], activation_id: str, label: str
    ) -> None:
        try:
            await action(activation_id)
        except Exception as e:
            logger.warning(f"{self._provider.name}: could not mark activation {label}: {e}")

    async def _sleep(self, seconds: float, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise asyncio.CancelledError("OTP polling cancelled")

    async def wait_for_code(
        self,
        activation_id: str,
        cancel_event: Optional[asyncio.Event] = None,
        mark_consumed: bool = True,
    ) -> str:
        """
        Poll until the provider delivers a code.

        Args:
            activation_id: Provider activation handle
            cancel_event: Optional cooperative stop signal
            mark_consumed: Tell the provider the code was used as soon as it
                arrives; callers that still have to submit it pass False

        Returns:
            The delivered code

        Raises:
            OtpDeliveryCancelledError: Provider reported the activation cancelled
                or refused it
            OtpDeliveryTimeoutError: Budget elapsed without a code
            asyncio.CancelledError: cancel_event was set or the task was cancelled
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        attempt = 0

        logger.info(f"Polling {self._provider.name} activation {activation_id} for OTP")
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError("OTP polling cancelled")

            attempt += 1
            try:
                raw_status = await self._provider.get_status(activation_id)
            except Exception as e:
                logger.warning(f"Error checking activation status (attempt {attempt}): {e}")
                raw_status = None

            if raw_status is not None:
                logger.debug(f"Activation raw status (attempt {attempt}): {raw_status!r}")
                code = extract_activation_code(raw_status)
                if code:
                    logger.info(f"OTP received for activation {activation_id}: {mask_otp(code)}")
                    if mark_consumed:
                        await self._best_effort(
                            self._provider.mark_consumed, activation_id, "consumed"
                        )
                    return code

                if classify_activation_status(raw_status) in _TERMINAL_STATES:
                    await self._best_effort(
                        self._provider.mark_cancelled, activation_id, "cancelled"
                    )
                    raise OtpDeliveryCancelledError(activation_id, raw_status)

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await self._sleep(min(self.interval_for(attempt), remaining), cancel_event)
            if loop.time() >= deadline:
                break

        await self._best_effort(self._provider.mark_cancelled, activation_id, "cancelled")
        raise OtpDeliveryTimeoutError(activation_id, self._timeout)
