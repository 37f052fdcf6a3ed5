"""Typed UI selectors understood by every device driver.

A selector is one of four frozen variants. Drivers translate them with
``to_locator`` instead of guessing at string shapes.
"""

from dataclasses import dataclass
from typing import Tuple, Union

UIAUTOMATOR_STRATEGY = "-android uiautomator"
ACCESSIBILITY_STRATEGY = "accessibility id"


@dataclass(frozen=True)
class ByResourceId:
    """Match on the Android resource id, e.g. ``com.whatsapp:id/eula_accept``."""

    resource_id: str

    def describe(self) -> str:
        return f"resourceId={self.resource_id}"


@dataclass(frozen=True)
class ByText:
    """Match on the exact visible text."""

    text: str

    def describe(self) -> str:
        return f"text={self.text!r}"


@dataclass(frozen=True)
class ByTextContains:
    """Match when the visible text contains the fragment."""

    fragment: str

    def describe(self) -> str:
        return f"textContains={self.fragment!r}"


@dataclass(frozen=True)
class ByAccessibilityDescription:
    """Match on the accessibility (content) description."""

    description: str

    def describe(self) -> str:
        return f"accessibility={self.description!r}"


Selector = Union[ByResourceId, ByText, ByTextContains, ByAccessibilityDescription]


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def to_locator(selector: Selector) -> Tuple[str, str]:
    """
    Translate a selector into a WebDriver ``(using, value)`` pair.

    Args:
        selector: One of the four selector variants

    Returns:
        Locator strategy and value for a find-element request

    Raises:
        TypeError: If given anything that is not a selector variant
    """
    if isinstance(selector, ByResourceId):
        return UIAUTOMATOR_STRATEGY, f'new UiSelector().resourceId("{_quote(selector.resource_id)}")'
    if isinstance(selector, ByText):
        return UIAUTOMATOR_STRATEGY, f'new UiSelector().text("{_quote(selector.text)}")'
    if isinstance(selector, ByTextContains):
        return UIAUTOMATOR_STRATEGY, f'new UiSelector().textContains("{_quote(selector.fragment)}")'
    if isinstance(selector, ByAccessibilityDescription):
        return ACCESSIBILITY_STRATEGY, selector.description
    raise TypeError(f"Unsupported selector type: {type(selector).__name__}")
