"""Tests for typed selectors and the driver helpers."""

from unittest.mock import AsyncMock

import pytest

from registrar.core.exceptions import DriverError
from registrar.device import ui_map
from registrar.device.driver import DriverSession, find_first_visible, wait_for_element
from registrar.device.selectors import (
    ByAccessibilityDescription,
    ByResourceId,
    ByText,
    ByTextContains,
    to_locator,
)
from tests.fakes import FakeDriver

SESSION = DriverSession(session_id="fake-1", device="emulator", app="com.whatsapp")


class TestToLocator:
    """Tests for rendering selectors into WebDriver locators."""

    def test_resource_id(self):
        assert to_locator(ByResourceId("com.whatsapp:id/eula_accept")) == (
            "-android uiautomator",
            'new UiSelector().resourceId("com.whatsapp:id/eula_accept")',
        )

    def test_exact_text(self):
        assert to_locator(ByText("Yes")) == ("-android uiautomator", 'new UiSelector().text("Yes")')

    def test_text_contains_escapes_quotes(self):
        using, value = to_locator(ByTextContains('say "hi"'))
        assert using == "-android uiautomator"
        assert value == 'new UiSelector().textContains("say \\"hi\\"")'

    def test_accessibility_description(self):
        assert to_locator(ByAccessibilityDescription("New chat")) == ("accessibility id", "New chat")

    def test_rejects_plain_strings(self):
        with pytest.raises(TypeError):
            to_locator("android=new UiSelector().text(\"Yes\")")

    def test_selectors_are_hashable_values(self):
        assert ByText("Yes") == ByText("Yes")
        assert len({ByText("Yes"), ByText("Yes"), ByTextContains("Yes")}) == 2


class TestFindFirstVisible:
    """Tests for first-match-wins candidate evaluation."""

    @pytest.mark.asyncio
    async def test_returns_first_visible_candidate_in_order(self):
        driver = FakeDriver(present=[ByText("OK"), ByTextContains("Yes")])
        found = await find_first_visible(driver, SESSION, ui_map.CONFIRM_CANDIDATES)
        assert found is not None
        selector, element = found
        assert selector == ByTextContains("Yes")
        assert element.selector == selector

    @pytest.mark.asyncio
    async def test_skips_present_but_hidden_candidate(self):
        driver = FakeDriver(present=[ByText("Yes"), ByText("OK")])
        driver.hidden.add(ByText("Yes"))
        selector, _ = await find_first_visible(driver, SESSION, ui_map.CONFIRM_CANDIDATES)
        assert selector == ByText("OK")

    @pytest.mark.asyncio
    async def test_driver_error_counts_as_absent(self):
        driver = FakeDriver(present=[ByText("OK")])
        driver.failing[ByText("Yes")] = DriverError("boom")
        selector, _ = await find_first_visible(driver, SESSION, ui_map.CONFIRM_CANDIDATES)
        assert selector == ByText("OK")

    @pytest.mark.asyncio
    async def test_none_when_nothing_matches(self):
        driver = FakeDriver()
        assert await find_first_visible(driver, SESSION, ui_map.CONFIRM_CANDIDATES) is None

    @pytest.mark.asyncio
    async def test_empty_candidates(self):
        driver = AsyncMock()
        assert await find_first_visible(driver, SESSION, []) is None
        driver.find_element.assert_not_called()


class TestWaitForElement:
    """Tests for the polling element wait."""

    @pytest.mark.asyncio
    async def test_found_immediately(self):
        driver = FakeDriver(present=[ui_map.OTP_FIELD])
        element = await wait_for_element(driver, SESSION, ui_map.OTP_FIELD, 1_000)
        assert element is not None
        assert driver.paused_ms == 0

    @pytest.mark.asyncio
    async def test_times_out_after_budget(self):
        driver = FakeDriver()
        element = await wait_for_element(driver, SESSION, ui_map.OTP_FIELD, 2_000)
        assert element is None
        assert driver.paused_ms == 2_000

    @pytest.mark.asyncio
    async def test_appears_while_polling(self):
        driver = FakeDriver()
        original_pause = driver.pause

        async def pause_then_show(ms):
            await original_pause(ms)
            driver.present.add(ui_map.OTP_FIELD)

        driver.pause = pause_then_show
        element = await wait_for_element(driver, SESSION, ui_map.OTP_FIELD, 5_000)
        assert element is not None
        assert driver.paused_ms == 500
