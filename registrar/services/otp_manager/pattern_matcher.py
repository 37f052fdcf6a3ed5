"""Pattern matching utilities for verification code extraction.

Two consumers:
- inbox text stored per phone is classified on read (VerificationCodeExtractor)
- raw OTP provider responses are mined for the delivered code
  (extract_activation_code)
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from loguru import logger

from registrar.core.enums import CodeType

# (pattern tag, code type, compiled regex); first match wins
_RULES: List[Tuple[str, CodeType, Pattern]] = [
    ("six_digit", CodeType.VERIFICATION_CODE, re.compile(r"\b([0-9]{6})\b", re.ASCII)),
    (
        "code_pattern",
        CodeType.VERIFICATION_CODE,
        re.compile(r"code\s*(?:is|:)?\s*([0-9]{4,8})", re.IGNORECASE | re.ASCII),
    ),
    ("otp_pattern", CodeType.OTP, re.compile(r"otp\s*:?\s*([0-9]{4,8})", re.IGNORECASE | re.ASCII)),
    (
        "confirmation_pattern",
        CodeType.CONFIRMATION_CODE,
        re.compile(r"confirmation\s*code\s*:?\s*([0-9]{4,8})", re.IGNORECASE | re.ASCII),
    ),
]

_ACTIVATION_CODE = re.compile(r"\b([0-9]{4,8})\b", re.ASCII)
_OK_INDICATOR = re.compile(r"(?:^|[^A-Z])OK(?:$|[^A-Z])")
_MESSAGE_FIELDS = ("message", "text", "sms", "body", "code")


@dataclass(frozen=True)
class CodeMatch:
    """A code found in message text."""

    code: str
    type: CodeType
    pattern: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "type": self.type.value, "pattern": self.pattern}


class VerificationCodeExtractor:
    """Stateless rule-ordered extractor for codes in free text."""

    def extract(self, text: Optional[str]) -> Optional[CodeMatch]:
        """
        Extract the first code matched by the ordered rules.

        A six-digit run outranks a labelled shorter code in the same text.

        Args:
            text: Message text

        Returns:
            CodeMatch or None when no rule matches
        """
        if not text:
            return None

        for tag, code_type, pattern in _RULES:
            match = pattern.search(text)
            if match:
                return CodeMatch(code=match.group(1), type=code_type, pattern=tag)
        return None


_default_extractor = VerificationCodeExtractor()


def extract_verification_code(text: Optional[str]) -> Optional[CodeMatch]:
    """Module-level shortcut for VerificationCodeExtractor().extract."""
    return _default_extractor.extract(text)


def parse_messages(messages: Iterable[Any]) -> List[Dict[str, Any]]:
    """
    Attach derived code information to stored messages.

    Args:
        messages: StoredMessage objects (anything with text/index/timestamp)

    Returns:
        One dict per message with code, code_type, pattern and
        is_verification_message added
    """
    parsed = []
    for position, message in enumerate(messages):
        match = _default_extractor.extract(message.text)
        parsed.append(
            {
                "index": position,
                "text": message.text,
                "timestamp": message.timestamp,
                "code": match.code if match else None,
                "code_type": match.type.value if match else None,
                "pattern": match.pattern if match else None,
                "is_verification_message": match is not None,
            }
        )
    return parsed


def _has_ok_indicator(payload: Dict[str, Any]) -> bool:
    indicator = str(payload.get("status") or payload.get("code") or "").upper()
    if _OK_INDICATOR.search(indicator):
        return True
    return any(
        isinstance(value, str) and value.upper().startswith("STATUS_OK")
        for value in payload.values()
    )


def extract_activation_code(raw_status: Any) -> Optional[str]:
    """
    Pull a delivered code out of an OTP provider status response.

    A bare string response is accepted on any 4-8 digit run (providers that
    answer ``STATUS_OK:123456`` or just ``123456``). A structured payload
    must also carry an OK indicator; message-like fields are searched
    before the whole payload.

    Args:
        raw_status: String or dict returned by the provider

    Returns:
        The code, or None if the response does not carry one yet
    """
    if isinstance(raw_status, str):
        match = _ACTIVATION_CODE.search(raw_status)
        return match.group(1) if match else None

    if isinstance(raw_status, dict):
        if not _has_ok_indicator(raw_status):
            return None
        candidates = [
            raw_status[name] for name in _MESSAGE_FIELDS if isinstance(raw_status.get(name), str)
        ]
        candidates.append(
            " ".join(
                value if isinstance(value, str) else json.dumps(value, default=str)
                for value in raw_status.values()
            )
        )
        for text in candidates:
            match = _ACTIVATION_CODE.search(text)
            if match:
                return match.group(1)
        logger.debug("OK status without a code in provider payload")
        return None

    return None
