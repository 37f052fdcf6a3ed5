"""Device automation layer: selectors, driver capability, Appium and ADB."""

from .driver import (
    DeviceDriver,
    DriverSession,
    ElementHandle,
    find_first_visible,
    wait_for_element,
)
from .selectors import (
    ByAccessibilityDescription,
    ByResourceId,
    ByText,
    ByTextContains,
    Selector,
    to_locator,
)

__all__ = [
    "DeviceDriver",
    "DriverSession",
    "ElementHandle",
    "find_first_visible",
    "wait_for_element",
    "Selector",
    "ByResourceId",
    "ByText",
    "ByTextContains",
    "ByAccessibilityDescription",
    "to_locator",
]
