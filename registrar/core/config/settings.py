"""Application settings with Pydantic validation."""

from typing import Any, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from registrar.constants import OTP, Timeouts


class RegistrarSettings(BaseSettings):
    """Application settings with validation and environment variable support."""

    # Environment
    env: str = Field(
        default="production", description="Environment (production, development, testing)"
    )

    @model_validator(mode="before")
    @classmethod
    def default_env_for_pytest(cls, data: Any) -> Any:
        """Auto-detect testing environment when running under pytest."""
        import sys

        if not isinstance(data, dict):
            return data

        if ("env" not in data or not data.get("env")) and "pytest" in sys.modules:
            data["env"] = "testing"

        return data

    # Logging
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_json: bool = Field(default=True, description="Write the file log sink as JSON lines")

    # Device / automation server
    device_udid: str = Field(
        default="127.0.0.1:7555", description="ADB serial of the target device or emulator"
    )
    adb_path: str = Field(default="adb", description="Path to the adb executable")
    appium_url: str = Field(
        default="http://127.0.0.1:4723", description="Base URL of the Appium server"
    )
    app_package: str = Field(default="com.whatsapp", description="Android package under test")
    app_activity: str = Field(default=".Main", description="Launch activity of the app")
    new_command_timeout: int = Field(
        default=300, ge=1, description="Appium newCommandTimeout in seconds"
    )
    http_timeout_seconds: float = Field(
        default=float(Timeouts.HTTP_REQUEST_SECONDS),
        gt=0,
        description="Timeout for a single automation server or OTP provider request",
    )

    # OTP source provider
    sms_activate_api_key: Optional[SecretStr] = Field(
        default=None, description="API key for the SMS-Activate OTP source"
    )
    sms_activate_base_url: str = Field(
        default="https://api.sms-activate.org/stubs/handler_api.php",
        description="SMS-Activate handler endpoint",
    )
    otp_poll_timeout_seconds: float = Field(
        default=float(OTP.POLL_TIMEOUT_SECONDS), gt=0, description="OTP polling budget"
    )
    otp_poll_initial_interval: float = Field(
        default=OTP.POLL_INITIAL_INTERVAL, gt=0, description="First OTP poll interval"
    )
    otp_poll_max_interval: float = Field(
        default=OTP.POLL_MAX_INTERVAL, gt=0, description="OTP poll interval cap"
    )
    otp_race_timeout_seconds: float = Field(
        default=float(Timeouts.OTP_RACE_SECONDS),
        gt=0,
        description="Overall budget for the UI wait raced against OTP delivery",
    )

    # UI steps
    step_retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per UI step")
    step_retry_wait_seconds: float = Field(
        default=2.0, ge=0, description="Wait between UI step attempts"
    )
    step_retry_backoff: bool = Field(
        default=False, description="Double the wait after each failed UI step attempt"
    )
    otp_field_timeout_ms: int = Field(
        default=Timeouts.OTP_FIELD, ge=1, description="Wait for the code entry field"
    )
    otp_settle_seconds: float = Field(
        default=OTP.SETTLE_SECONDS, ge=0, description="Pause after typing the code"
    )
    completion_timeout_ms: int = Field(
        default=Timeouts.COMPLETION_LANDMARK,
        ge=1,
        description="Wait for the post-registration landmark",
    )
    max_otp_attempts: int = Field(
        default=OTP.MAX_ATTEMPTS, ge=1, le=3, description="OTP submissions allowed per session"
    )

    # Store
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the durable phone store (leave empty for in-memory)",
    )
    session_cache_ttl: int = Field(
        default=900, ge=1, description="TTL in seconds of the session cache mirror"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        allowed = {"production", "development", "testing"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"ENV must be one of {sorted(allowed)}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)}")
        return v

    @field_validator("appium_url", "sms_activate_base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate HTTP URLs and strip trailing slashes."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_poll_intervals(self) -> "RegistrarSettings":
        """Ensure the poll interval cap is not below the first interval."""
        if self.otp_poll_max_interval < self.otp_poll_initial_interval:
            raise ValueError("OTP_POLL_MAX_INTERVAL must be >= OTP_POLL_INITIAL_INTERVAL")
        return self

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env == "development"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"


# Singleton instance
_settings: Optional[RegistrarSettings] = None


def get_settings() -> RegistrarSettings:
    """
    Get application settings singleton.

    Returns:
        RegistrarSettings instance

    Raises:
        ValidationError: If settings are invalid
    """
    global _settings
    if _settings is None:
        _settings = RegistrarSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (useful for testing)."""
    global _settings
    _settings = None
