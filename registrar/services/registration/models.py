"""Data models of registration sessions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from registrar.core.enums import TERMINAL_STATUSES, RegistrationStatus


@dataclass
class RegistrationSession:
    """
    One registration attempt on the device.

    Attributes:
        session_id: Run-scoped identifier chosen by the caller
        phone_number: Phone number as supplied (E.164-like)
        country_code: Country calling code typed into the app
        status: Current status
        otp_attempts: OTP submissions so far (never above the configured maximum)
        created_at: Creation time
        updated_at: Time of the last status change
        error: Message of the error that failed the session
        error_type: Classification of that error
        completed_at: Time a terminal status was reached
    """

    session_id: str
    phone_number: str
    country_code: str
    status: RegistrationStatus = RegistrationStatus.PENDING
    otp_attempts: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None
    error_type: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logs, caches and the CLI."""
        return {
            "session_id": self.session_id,
            "phone_number": self.phone_number,
            "country_code": self.country_code,
            "status": self.status.value,
            "otp_attempts": self.otp_attempts,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "error": self.error,
            "error_type": self.error_type,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a successful operation on a session."""

    session_id: str
    status: RegistrationStatus
    phone_number: str
    messages_extracted: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "session_id": self.session_id,
            "status": self.status.value,
            "phone_number": self.phone_number,
            "messages_extracted": self.messages_extracted,
            "message": self.message,
        }
