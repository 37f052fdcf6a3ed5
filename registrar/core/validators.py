"""Phone number validation and splitting helpers."""

import re
from typing import Optional

from registrar.core.exceptions import InvalidPhoneNumberError

E164_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
_LEADING_CC = re.compile(r"^\d{1,3}")


def validate_phone(phone: str) -> bool:
    """
    Validate E.164-like phone number format.

    Args:
        phone: Phone number to validate (no separators allowed)

    Returns:
        True if phone format is valid, False otherwise
    """
    if not isinstance(phone, str):
        return False
    return bool(E164_PATTERN.fullmatch(phone))


def ensure_valid_phone(phone: str) -> str:
    """Return the phone number unchanged or raise InvalidPhoneNumberError."""
    if not validate_phone(phone):
        raise InvalidPhoneNumberError(phone)
    return phone


def derive_country_code(phone: str, country_code: Optional[str] = None) -> str:
    """
    Resolve the country calling code for a registration.

    An explicit code wins (stripped of a leading +); otherwise the first
    one to three digits of the number are used.

    Args:
        phone: Phone number, optionally with a leading +
        country_code: Explicit calling code, if the caller knows it

    Returns:
        Country calling code as digits
    """
    if country_code:
        return country_code.lstrip("+")
    match = _LEADING_CC.match(phone.lstrip("+"))
    return match.group(0) if match else ""


def local_number(phone: str, country_code: str) -> str:
    """
    Digits typed into the phone field: the number without + and calling code.

    Example: ("+14155550100", "1") -> "4155550100"
    """
    digits = phone.lstrip("+")
    if country_code and digits.startswith(country_code):
        return digits[len(country_code):]
    return digits
