"""Tests for the UI walk raced against OTP delivery."""

import pytest

from registrar.core.config.settings import RegistrarSettings
from registrar.core.enums import RegistrationStatus as S
from registrar.core.exceptions import (
    DeviceUnreachableError,
    OtpDeliveryCancelledError,
    OtpDeliveryTimeoutError,
    OtpFieldTimeoutError,
    OtpRejectedError,
)
from registrar.device import ui_map
from registrar.services.otp_manager.poller import OTPPoller
from registrar.services.registration.auto import AutoRegistrationRunner
from registrar.services.registration.orchestrator import RegistrationOrchestrator
from tests.fakes import FakeOTPProvider


def make_poller(provider, timeout_seconds=5.0):
    return OTPPoller(
        provider, timeout_seconds=timeout_seconds, initial_interval=0.001, max_interval=0.01
    )


@pytest.fixture
def slow_otp_field(fake_driver):
    """The code field never shows and every pause takes a little real time."""
    fake_driver.present.discard(ui_map.OTP_FIELD)
    fake_driver.pause_scale = 0.001
    return fake_driver


def race_orchestrator(fake_driver, phone_store, bus, device_check, **overrides):
    values = dict(
        step_retry_wait_seconds=0,
        otp_settle_seconds=0,
        otp_field_timeout_ms=10_000_000,
        completion_timeout_ms=2_000,
    )
    values.update(overrides)
    settings = RegistrarSettings(**values)
    orchestrator = RegistrationOrchestrator(
        fake_driver, phone_store, bus=bus, settings=settings, device_check=device_check
    )
    return orchestrator, settings


class TestAutoRegistration:
    """Tests for AutoRegistrationRunner."""

    @pytest.mark.asyncio
    async def test_registers_with_delivered_code(
        self, orchestrator, settings, fake_driver, phone_store, bus
    ):
        provider = FakeOTPProvider(["STATUS_WAIT_CODE", "STATUS_WAIT_CODE", "STATUS_OK:482913"])
        runner = AutoRegistrationRunner(orchestrator, make_poller(provider), settings)

        result = await runner.run("s1", "+14155550100", "1", "act-1")

        assert result.status is S.REGISTERED
        assert result.messages_extracted == 2
        assert fake_driver.typed(ui_map.OTP_FIELD) == ["482913"]
        assert provider.consumed == ["act-1"]
        assert provider.cancelled == []
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_polling_starts_once_sms_is_requested(self, orchestrator, settings):
        seen = []

        class WatchingProvider(FakeOTPProvider):
            async def get_status(self, activation_id):
                seen.append(orchestrator.get_session("s1").status)
                return await super().get_status(activation_id)

        provider = WatchingProvider(["STATUS_OK:482913"])
        runner = AutoRegistrationRunner(orchestrator, make_poller(provider), settings)

        await runner.run("s1", "+14155550100", "1", "act-1")

        assert seen
        assert set(seen) <= {
            S.RESOLVING_VERIFICATION_METHOD,
            S.AWAITING_OTP_FIELD,
            S.AWAITING_OTP_VALUE,
        }

    @pytest.mark.asyncio
    async def test_ui_failure_releases_activation(
        self, orchestrator, settings, device_check
    ):
        device_check.side_effect = DeviceUnreachableError("127.0.0.1:7555")
        provider = FakeOTPProvider()
        runner = AutoRegistrationRunner(orchestrator, make_poller(provider), settings)

        with pytest.raises(DeviceUnreachableError):
            await runner.run("s1", "+14155550100", "1", "act-1")

        assert provider.calls == 0
        assert provider.cancelled == ["act-1"]
        assert orchestrator.get_session("s1").status is S.FAILED

    @pytest.mark.asyncio
    async def test_cancelled_activation_stops_the_ui_walk(
        self, slow_otp_field, phone_store, bus, device_check, recorded_events
    ):
        orchestrator, settings = race_orchestrator(slow_otp_field, phone_store, bus, device_check)
        provider = FakeOTPProvider(["STATUS_CANCEL"])
        runner = AutoRegistrationRunner(orchestrator, make_poller(provider), settings)

        with pytest.raises(OtpDeliveryCancelledError):
            await runner.run("s1", "+14155550100", "1", "act-1")

        session = orchestrator.get_session("s1")
        assert session.status is S.FAILED
        assert session.error_type == "OtpDeliveryCancelledError"
        assert orchestrator.has_session("s1") is False
        assert len(slow_otp_field.closed) == 1
        # Marked once by the poller itself
        assert provider.cancelled == ["act-1"]
        assert [e.status for e in recorded_events].count(S.FAILED) == 1

    @pytest.mark.asyncio
    async def test_poll_timeout_fails_the_session(
        self, slow_otp_field, phone_store, bus, device_check
    ):
        orchestrator, settings = race_orchestrator(slow_otp_field, phone_store, bus, device_check)
        provider = FakeOTPProvider()
        runner = AutoRegistrationRunner(
            orchestrator, make_poller(provider, timeout_seconds=0.05), settings
        )

        with pytest.raises(OtpDeliveryTimeoutError):
            await runner.run("s1", "+14155550100", "1", "act-1")

        assert orchestrator.get_session("s1").error_type == "OtpDeliveryTimeoutError"
        assert provider.cancelled == ["act-1"]
        assert len(slow_otp_field.closed) == 1

    @pytest.mark.asyncio
    async def test_race_budget_elapses_while_waiting_for_the_field(
        self, slow_otp_field, phone_store, bus, device_check
    ):
        orchestrator, settings = race_orchestrator(
            slow_otp_field, phone_store, bus, device_check, otp_race_timeout_seconds=0.2
        )
        provider = FakeOTPProvider()
        runner = AutoRegistrationRunner(
            orchestrator, make_poller(provider, timeout_seconds=60), settings
        )

        with pytest.raises(OtpFieldTimeoutError):
            await runner.run("s1", "+14155550100", "1", "act-1")

        session = orchestrator.get_session("s1")
        assert session.status is S.FAILED
        assert session.error_type == "OtpFieldTimeoutError"
        assert provider.cancelled == ["act-1"]
        assert len(slow_otp_field.closed) == 1

    @pytest.mark.asyncio
    async def test_refused_code_releases_device_and_activation(
        self, orchestrator, settings, fake_driver
    ):
        fake_driver.rejected_codes.add("482913")
        provider = FakeOTPProvider(["STATUS_OK:482913"])
        runner = AutoRegistrationRunner(orchestrator, make_poller(provider), settings)

        with pytest.raises(OtpRejectedError):
            await runner.run("s1", "+14155550100", "1", "act-1")

        session = orchestrator.get_session("s1")
        assert session.status is S.FAILED
        assert session.error_type == "OtpRejectedError"
        assert orchestrator.has_session("s1") is False
        assert orchestrator.get_active_session_count() == 0
        assert len(fake_driver.closed) == 1
        assert provider.consumed == []
        assert provider.cancelled == ["act-1"]

    @pytest.mark.asyncio
    async def test_activation_consumed_only_after_acceptance(
        self, orchestrator, settings, fake_driver
    ):
        consumed_at = []

        class RecordingProvider(FakeOTPProvider):
            async def mark_consumed(self, activation_id):
                consumed_at.append(orchestrator.get_session("s1").status)
                await super().mark_consumed(activation_id)

        provider = RecordingProvider(["STATUS_OK:482913"])
        runner = AutoRegistrationRunner(orchestrator, make_poller(provider), settings)

        await runner.run("s1", "+14155550100", "1", "act-1")

        assert consumed_at == [S.REGISTERED]
