"""Device automation driver capability and selector helpers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from registrar.core.exceptions import DriverError

from .selectors import Selector

# Poll step used while an element is not yet present in the hierarchy
FIND_POLL_MS = 500


@dataclass
class DriverSession:
    """An open automation session against one device and app."""

    session_id: str
    device: str
    app: str
    capabilities: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ElementHandle:
    """Reference to one element found in an automation session."""

    session_id: str
    element_id: str
    selector: Selector


class DeviceDriver(ABC):
    """
    Remote UI control of one device.

    Every method is a suspension point. Implementations raise DriverError
    for transport or protocol failures and return None/False for
    "not found" / "not visible".
    """

    @abstractmethod
    async def open(self, device: str, app: str) -> DriverSession:
        """Open an automation session against the device and launch the app."""

    @abstractmethod
    async def find_element(
        self, session: DriverSession, selector: Selector
    ) -> Optional[ElementHandle]:
        """Find the first element matching the selector, or None."""

    @abstractmethod
    async def wait_until_visible(self, element: ElementHandle, timeout_ms: int) -> bool:
        """Wait until the element is displayed; False when the timeout elapses."""

    @abstractmethod
    async def click(self, element: ElementHandle) -> None:
        """Tap the element."""

    @abstractmethod
    async def set_text(self, element: ElementHandle, text: str) -> None:
        """Type text into the element."""

    @abstractmethod
    async def clear_text(self, element: ElementHandle) -> None:
        """Clear the element's text."""

    @abstractmethod
    async def get_text(self, element: ElementHandle) -> str:
        """Read the element's visible text."""

    @abstractmethod
    async def list_elements(
        self, session: DriverSession, selector: Selector
    ) -> List[ElementHandle]:
        """Find every element matching the selector."""

    @abstractmethod
    async def pause(self, ms: int) -> None:
        """Sleep for the given number of milliseconds."""

    @abstractmethod
    async def close(self, session: DriverSession) -> None:
        """Delete the automation session."""


async def wait_for_element(
    driver: DeviceDriver,
    session: DriverSession,
    selector: Selector,
    timeout_ms: int,
) -> Optional[ElementHandle]:
    """
    Wait for an element to exist and be displayed.

    The element may not be in the hierarchy yet, so lookups are repeated
    every FIND_POLL_MS until the budget is spent.

    Args:
        driver: Device driver
        session: Open driver session
        selector: Selector of the element
        timeout_ms: Total budget in milliseconds

    Returns:
        The visible element, or None when the budget elapsed
    """
    waited = 0
    while True:
        element = await driver.find_element(session, selector)
        if element is not None:
            remaining = max(timeout_ms - waited, 0)
            if await driver.wait_until_visible(element, remaining):
                return element
            return None
        if waited >= timeout_ms:
            return None
        await driver.pause(FIND_POLL_MS)
        waited += FIND_POLL_MS


async def find_first_visible(
    driver: DeviceDriver,
    session: DriverSession,
    candidates: Sequence[Selector],
    timeout_ms: int = 1_000,
) -> Optional[Tuple[Selector, ElementHandle]]:
    """
    Evaluate candidate selectors in order and return the first visible match.

    A candidate whose lookup fails with a DriverError is treated as absent.

    Args:
        driver: Device driver
        session: Open driver session
        candidates: Selectors in priority order
        timeout_ms: Visibility wait per candidate that exists

    Returns:
        (matching selector, element) or None when no candidate is visible
    """
    for candidate in candidates:
        try:
            element = await driver.find_element(session, candidate)
            if element is not None and await driver.wait_until_visible(element, timeout_ms):
                return candidate, element
        except DriverError as e:
            logger.debug(f"Candidate {candidate.describe()} lookup failed: {e}")
    return None
