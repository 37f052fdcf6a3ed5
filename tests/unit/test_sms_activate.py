"""Tests for the SMS-Activate provider."""

from unittest.mock import AsyncMock, patch

import pytest

from registrar.core.config.settings import RegistrarSettings
from registrar.core.exceptions import ConfigurationError
from registrar.services.otp_manager.providers.sms_activate import SmsActivateProvider


@pytest.fixture
def provider():
    return SmsActivateProvider(RegistrarSettings(sms_activate_api_key="secret-key"))


def test_requires_api_key():
    with pytest.raises(ConfigurationError):
        SmsActivateProvider(RegistrarSettings())


def test_name(provider):
    assert provider.name == "sms-activate"


@pytest.mark.asyncio
async def test_get_status_calls_handler_action(provider):
    with patch.object(provider, "_call", AsyncMock(return_value="STATUS_WAIT_CODE")) as call:
        assert await provider.get_status("123") == "STATUS_WAIT_CODE"
    call.assert_awaited_once_with("getStatus", id="123")


@pytest.mark.asyncio
async def test_mark_consumed_sets_finished(provider):
    with patch.object(provider, "_call", AsyncMock(return_value="ACCESS_ACTIVATION")) as call:
        await provider.mark_consumed("123")
    call.assert_awaited_once_with("setStatus", id="123", status=6)


@pytest.mark.asyncio
async def test_mark_cancelled_sets_cancel(provider):
    with patch.object(provider, "_call", AsyncMock(return_value="ACCESS_CANCEL")) as call:
        await provider.mark_cancelled("123")
    call.assert_awaited_once_with("setStatus", id="123", status=8)


@pytest.mark.asyncio
async def test_aclose_without_session(provider):
    await provider.aclose()
