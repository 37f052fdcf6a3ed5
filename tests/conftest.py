"""Pytest configuration and common fixtures."""

import os
import sys
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Try to load test-specific environment file if it exists
test_env_file = Path(__file__).parent / ".env.test"
if test_env_file.exists():
    load_dotenv(test_env_file)

# CRITICAL: Set environment variables BEFORE any registrar imports
# Actual test isolation is provided by the setup_test_environment fixture using monkeypatch.
os.environ.setdefault("ENV", "testing")

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from unittest.mock import AsyncMock

# NOW it's safe to import from registrar
import pytest

from registrar.core.config.settings import RegistrarSettings
from registrar.core.infra.redis_manager import RedisManager
from registrar.services.notification.event_bus import StatusEventBus
from registrar.services.registration.orchestrator import RegistrationOrchestrator
from registrar.services.session.backends import InMemoryBackend
from registrar.services.session.phone_store import PhoneSessionStore
from tests.fakes import FakeDriver, FakeOTPProvider


def pytest_configure(config):
    """Configure pytest environment before tests run."""
    warnings.filterwarnings("ignore", message="coroutine.*was never awaited")


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Automatically set up test environment for all tests."""
    monkeypatch.setenv("ENV", "testing")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("STEP_RETRY_WAIT_SECONDS", "0")
    monkeypatch.setenv("OTP_SETTLE_SECONDS", "0")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("SMS_ACTIVATE_API_KEY", raising=False)

    # Reset singletons so each test gets fresh settings
    from registrar.core.config.settings import reset_settings

    reset_settings()
    RedisManager.reset()
    yield
    reset_settings()
    RedisManager.reset()


@pytest.fixture
def settings() -> RegistrarSettings:
    """Settings tuned for fast tests (no retry waits, no settle pause)."""
    return RegistrarSettings(
        step_retry_wait_seconds=0,
        otp_settle_seconds=0,
        otp_field_timeout_ms=5_000,
        completion_timeout_ms=2_000,
    )


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def phone_store(backend) -> PhoneSessionStore:
    return PhoneSessionStore(backend)


@pytest.fixture
def bus() -> StatusEventBus:
    return StatusEventBus()


@pytest.fixture
def fake_driver() -> FakeDriver:
    """Driver whose screen shows every control of the happy path."""
    return FakeDriver.happy_path(inbox=["Your WhatsApp code is 482913", "Welcome to WhatsApp"])


@pytest.fixture
def fake_provider() -> FakeOTPProvider:
    return FakeOTPProvider()


@pytest.fixture
def device_check() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def orchestrator(fake_driver, phone_store, bus, settings, device_check) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        fake_driver, phone_store, bus=bus, settings=settings, device_check=device_check
    )


@pytest.fixture
def recorded_events(bus):
    """List filled with every event published on the bus."""
    events = []
    bus.subscribe(events.append)
    return events
