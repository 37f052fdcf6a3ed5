"""Appium driver speaking the W3C WebDriver protocol over aiohttp."""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from registrar.core.config.settings import RegistrarSettings
from registrar.core.exceptions import DriverError

from .driver import DeviceDriver, DriverSession, ElementHandle
from .selectors import Selector, to_locator

# W3C element reference key
ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"

# WebDriver error codes that mean "not there right now" rather than a failure
_ABSENT_ERRORS = frozenset({"no such element", "stale element reference"})

VISIBILITY_POLL_MS = 250


class AppiumDriver(DeviceDriver):
    """DeviceDriver backed by an Appium server (UiAutomator2)."""

    def __init__(self, settings: RegistrarSettings):
        """
        Initialize Appium driver.

        Args:
            settings: Application settings (server URL, app and timeouts)
        """
        self._settings = settings
        self._base_url = settings.appium_url
        self._http_session: Optional[aiohttp.ClientSession] = None

    def build_capabilities(self, device: str, app: str) -> Dict[str, Any]:
        """
        Build Appium capabilities for the device and app.

        Args:
            device: ADB serial of the device
            app: Android package name

        Returns:
            Capabilities for the new-session request
        """
        return {
            "platformName": "Android",
            "appium:automationName": "UiAutomator2",
            "appium:deviceName": device,
            "appium:udid": device,
            "appium:appPackage": app,
            "appium:appActivity": self._settings.app_activity,
            "appium:noReset": False,
            "appium:fullReset": False,
            "appium:newCommandTimeout": self._settings.new_command_timeout,
        }

    def _session(self) -> aiohttp.ClientSession:
        """Get or lazily create the HTTP session."""
        if self._http_session is None or self._http_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._settings.http_timeout_seconds)
            self._http_session = aiohttp.ClientSession(timeout=timeout)
        return self._http_session

    async def aclose(self) -> None:
        """Close the underlying HTTP session."""
        if self._http_session is not None and not self._http_session.closed:
            await self._http_session.close()
        self._http_session = None

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Send one WebDriver command and return its ``value``.

        Args:
            method: HTTP method
            path: Path below the server base URL
            payload: JSON body for POST commands

        Returns:
            The ``value`` member of the response

        Raises:
            DriverError: On transport failures and WebDriver errors
        """
        url = f"{self._base_url}{path}"
        try:
            async with self._session().request(method, url, json=payload) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    text = await response.text()
                    raise DriverError(
                        f"Non-JSON response from automation server ({response.status})",
                        details={"body": text[:200]},
                    )
        except aiohttp.ClientError as e:
            raise DriverError(f"Automation server request failed: {e}", recoverable=True) from e
        except asyncio.TimeoutError as e:
            raise DriverError(f"Automation server request timed out: {method} {path}") from e

        value = data.get("value") if isinstance(data, dict) else None
        if isinstance(value, dict) and "error" in value:
            raise DriverError(
                value.get("message") or value["error"],
                details={"error": value["error"], "status": response.status},
            )
        return value

    @staticmethod
    def _is_absent(error: DriverError) -> bool:
        return error.details.get("error") in _ABSENT_ERRORS

    async def open(self, device: str, app: str) -> DriverSession:
        capabilities = self.build_capabilities(device, app)
        value = await self._request(
            "POST",
            "/session",
            {"capabilities": {"alwaysMatch": capabilities, "firstMatch": [{}]}},
        )
        session_id = value.get("sessionId") if isinstance(value, dict) else None
        if not session_id:
            raise DriverError("Automation server did not return a session id")
        logger.info(f"Appium session started: {session_id}")
        return DriverSession(
            session_id=session_id, device=device, app=app, capabilities=capabilities
        )

    async def find_element(
        self, session: DriverSession, selector: Selector
    ) -> Optional[ElementHandle]:
        using, value = to_locator(selector)
        try:
            found = await self._request(
                "POST",
                f"/session/{session.session_id}/element",
                {"using": using, "value": value},
            )
        except DriverError as e:
            if self._is_absent(e):
                return None
            raise
        return ElementHandle(session.session_id, found[ELEMENT_KEY], selector)

    async def list_elements(
        self, session: DriverSession, selector: Selector
    ) -> List[ElementHandle]:
        using, value = to_locator(selector)
        found = await self._request(
            "POST",
            f"/session/{session.session_id}/elements",
            {"using": using, "value": value},
        )
        return [ElementHandle(session.session_id, item[ELEMENT_KEY], selector) for item in found or []]

    def _element_path(self, element: ElementHandle, command: str) -> str:
        return f"/session/{element.session_id}/element/{element.element_id}/{command}"

    async def _is_displayed(self, element: ElementHandle) -> bool:
        try:
            return bool(await self._request("GET", self._element_path(element, "displayed")))
        except DriverError as e:
            if self._is_absent(e):
                return False
            raise

    async def wait_until_visible(self, element: ElementHandle, timeout_ms: int) -> bool:
        waited = 0
        while True:
            if await self._is_displayed(element):
                return True
            if waited >= timeout_ms:
                return False
            await self.pause(VISIBILITY_POLL_MS)
            waited += VISIBILITY_POLL_MS

    async def click(self, element: ElementHandle) -> None:
        await self._request("POST", self._element_path(element, "click"), {})

    async def set_text(self, element: ElementHandle, text: str) -> None:
        await self._request("POST", self._element_path(element, "value"), {"text": text})

    async def clear_text(self, element: ElementHandle) -> None:
        await self._request("POST", self._element_path(element, "clear"), {})

    async def get_text(self, element: ElementHandle) -> str:
        value = await self._request("GET", self._element_path(element, "text"))
        return value or ""

    async def pause(self, ms: int) -> None:
        await asyncio.sleep(ms / 1000)

    async def close(self, session: DriverSession) -> None:
        await self._request("DELETE", f"/session/{session.session_id}")
        logger.info(f"Appium session closed: {session.session_id}")
