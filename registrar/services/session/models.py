"""Data models of the persistent phone store."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 text."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StoredMessage:
    """
    One line of inbox text extracted from the device.

    Attributes:
        index: Position of the line at extraction time
        text: Raw line text (classification happens on read)
        timestamp: Extraction time (ISO-8601)
    """

    index: int
    text: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "text": self.text, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredMessage":
        return cls(
            index=int(data.get("index", 0)),
            text=str(data["text"]),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


@dataclass
class PhoneAccount:
    """
    Durable record of everything associated with one normalized phone number.

    Attributes:
        phone_number: Digits-only phone number (the identity key)
        session_id: Latest registration session that used this phone
        active: Whether that session is still in flight
        last_status: Last status reported for that session
        last_error: Last error reported for that session
        messages: Merged message history in insertion order
        last_extraction: Time of the last message extraction
        created_at: First registration attempt for this phone
    """

    phone_number: str
    session_id: Optional[str] = None
    active: bool = False
    last_status: Optional[str] = None
    last_error: Optional[str] = None
    messages: List[StoredMessage] = field(default_factory=list)
    last_extraction: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "session_id": self.session_id,
            "active": self.active,
            "last_status": self.last_status,
            "last_error": self.last_error,
            "messages": [message.to_dict() for message in self.messages],
            "last_extraction": self.last_extraction,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhoneAccount":
        return cls(
            phone_number=data["phone_number"],
            session_id=data.get("session_id"),
            active=bool(data.get("active", False)),
            last_status=data.get("last_status"),
            last_error=data.get("last_error"),
            messages=[StoredMessage.from_dict(item) for item in data.get("messages", [])],
            last_extraction=data.get("last_extraction"),
            created_at=data.get("created_at") or utc_now_iso(),
        )
