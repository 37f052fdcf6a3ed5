"""SMS-Activate OTP source over its handler_api HTTP interface."""

import json
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

from registrar.constants import ActivationStatus
from registrar.core.config.settings import RegistrarSettings
from registrar.core.exceptions import ConfigurationError, RegistrarError

from .base import OTPSourceProvider


class SmsActivateError(RegistrarError):
    """SMS-Activate answered with an error or could not be reached."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, recoverable=True, details=details)


class SmsActivateProvider(OTPSourceProvider):
    """OTP source backed by SMS-Activate activations."""

    def __init__(self, settings: RegistrarSettings):
        """
        Initialize SMS-Activate provider.

        Args:
            settings: Application settings with API key and endpoint

        Raises:
            ConfigurationError: If no API key is configured
        """
        if settings.sms_activate_api_key is None:
            raise ConfigurationError("SMS_ACTIVATE_API_KEY is required for automatic OTP delivery")
        self._api_key = settings.sms_activate_api_key
        self._base_url = settings.sms_activate_base_url
        self._timeout = aiohttp.ClientTimeout(total=settings.http_timeout_seconds)
        self._http_session: Optional[aiohttp.ClientSession] = None

    @property
    def name(self) -> str:
        return "sms-activate"

    def _session(self) -> aiohttp.ClientSession:
        if self._http_session is None or self._http_session.closed:
            self._http_session = aiohttp.ClientSession(timeout=self._timeout)
        return self._http_session

    async def aclose(self) -> None:
        if self._http_session is not None and not self._http_session.closed:
            await self._http_session.close()
        self._http_session = None

    async def _call(self, action: str, **params: Any) -> Any:
        """
        Call one handler_api action.

        Returns:
            Parsed JSON when the body is JSON, the stripped text otherwise
        """
        query = {"api_key": self._api_key.get_secret_value(), "action": action}
        query.update({key: str(value) for key, value in params.items()})
        try:
            async with self._session().get(self._base_url, params=query) as response:
                body = (await response.text()).strip()
                if response.status >= 400:
                    raise SmsActivateError(
                        f"SMS-Activate {action} failed with HTTP {response.status}",
                        details={"body": body[:200]},
                    )
        except aiohttp.ClientError as e:
            raise SmsActivateError(f"SMS-Activate {action} request failed: {e}") from e

        if body.startswith(("{", "[")):
            try:
                return json.loads(body)
            except ValueError:
                logger.debug(f"SMS-Activate {action} returned malformed JSON")
        return body

    async def get_status(self, activation_id: str) -> Any:
        return await self._call("getStatus", id=activation_id)

    async def set_status(self, activation_id: str, status: int) -> Any:
        result = await self._call("setStatus", id=activation_id, status=status)
        logger.debug(f"SMS-Activate setStatus({status}) -> {result}")
        return result

    async def mark_consumed(self, activation_id: str) -> None:
        await self.set_status(activation_id, ActivationStatus.FINISHED)

    async def mark_cancelled(self, activation_id: str) -> None:
        await self.set_status(activation_id, ActivationStatus.CANCELLED)
