"""Persistent phone store keyed by normalized phone number."""

import re
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger

from registrar.core.exceptions import InvalidPhoneNumberError
from registrar.utils.masking import mask_phone

from .backends import StoreBackend
from .models import PhoneAccount, StoredMessage, utc_now_iso

PHONE_KEY_PREFIX = "phone:"
_NON_DIGITS = re.compile(r"\D")

MessageInput = Union[StoredMessage, Dict[str, Any], str]


class PhoneSessionStore:
    """
    Durable map from normalized phone number to account metadata and
    merged message history.

    Accounts are written without a TTL, so with a durable backend they
    outlive the orchestrator process. Message history only grows: a new
    batch adds the lines whose exact text is not stored yet.
    """

    def __init__(self, backend: StoreBackend):
        """
        Initialize phone store.

        Args:
            backend: Key-value backing (in-memory for tests, Redis in production)
        """
        self._backend = backend

    @staticmethod
    def normalize(phone_number: str) -> str:
        """Reduce a phone number to its digits ("+1 415-555-0100" -> "14155550100")."""
        return _NON_DIGITS.sub("", phone_number or "")

    def _key_for(self, phone_number: str) -> str:
        digits = self.normalize(phone_number)
        if not digits:
            raise InvalidPhoneNumberError(phone_number)
        return f"{PHONE_KEY_PREFIX}{digits}"

    def _load(self, phone_number: str) -> Optional[PhoneAccount]:
        digits = self.normalize(phone_number)
        if not digits:
            return None
        data = self._backend.get(f"{PHONE_KEY_PREFIX}{digits}")
        return PhoneAccount.from_dict(data) if data else None

    def _save(self, account: PhoneAccount) -> None:
        self._backend.set(f"{PHONE_KEY_PREFIX}{account.phone_number}", account.to_dict())

    def register_phone(self, phone_number: str) -> PhoneAccount:
        """
        Get or create the account of a phone number.

        Args:
            phone_number: Phone number in any separator format

        Returns:
            The existing or newly created account

        Raises:
            InvalidPhoneNumberError: The number contains no digits
        """
        data = self._backend.get(self._key_for(phone_number))
        if data:
            return PhoneAccount.from_dict(data)
        account = PhoneAccount(phone_number=self.normalize(phone_number))
        self._save(account)
        logger.info(f"Phone registered in store: {mask_phone(account.phone_number)}")
        return account

    def attach_session(self, phone_number: str, session_id: str) -> PhoneAccount:
        """Mark a registration session as the phone's active session."""
        account = self.register_phone(phone_number)
        account.session_id = session_id
        account.active = True
        account.last_status = None
        account.last_error = None
        self._save(account)
        return account

    def record_status(
        self,
        phone_number: str,
        session_id: str,
        status: str,
        error: Optional[str] = None,
        terminal: bool = False,
    ) -> None:
        """
        Persist the latest status of the phone's session.

        Reports for a session other than the attached one are ignored.
        """
        account = self.register_phone(phone_number)
        if account.session_id not in (None, session_id):
            logger.debug(
                f"Ignoring status of stale session {session_id} for "
                f"{mask_phone(account.phone_number)}"
            )
            return
        account.session_id = session_id
        account.last_status = status
        account.last_error = error
        account.active = not terminal
        self._save(account)

    def deactivate(self, phone_number: str) -> bool:
        """Clear the active flag; False when the phone is unknown."""
        account = self._load(phone_number)
        if account is None:
            return False
        account.active = False
        self._save(account)
        return True

    def store_messages(
        self, phone_number: str, new_messages: Iterable[MessageInput]
    ) -> List[StoredMessage]:
        """
        Merge a batch of messages into the phone's history.

        Only messages whose exact text is not stored yet are appended.
        The last-extraction time is updated even if nothing new arrived.

        Args:
            phone_number: Phone number in any separator format
            new_messages: StoredMessage objects, dicts with a "text" key or plain strings

        Returns:
            The full merged history
        """
        account = self.register_phone(phone_number)
        known = {message.text for message in account.messages}
        added = 0
        for position, item in enumerate(new_messages):
            message = _coerce_message(item, position)
            if message.text in known:
                continue
            account.messages.append(message)
            known.add(message.text)
            added += 1
        account.last_extraction = utc_now_iso()
        self._save(account)
        logger.info(
            f"Stored {added} new message(s), {len(account.messages)} total for "
            f"{mask_phone(account.phone_number)}"
        )
        return list(account.messages)

    def get_messages(self, phone_number: str) -> List[StoredMessage]:
        """Full accumulated history in insertion order (empty if unknown)."""
        account = self._load(phone_number)
        return list(account.messages) if account else []

    def phone_exists(self, phone_number: str) -> bool:
        digits = self.normalize(phone_number)
        return bool(digits) and self._backend.get(f"{PHONE_KEY_PREFIX}{digits}") is not None

    def get_account(self, phone_number: str) -> Optional[PhoneAccount]:
        return self._load(phone_number)

    def get_phone_info(self, phone_number: str) -> Optional[Dict[str, Any]]:
        """Summary of an account without its message bodies."""
        account = self._load(phone_number)
        if account is None:
            return None
        return {
            "phone_number": account.phone_number,
            "session_id": account.session_id,
            "active": account.active,
            "last_status": account.last_status,
            "last_error": account.last_error,
            "created_at": account.created_at,
            "last_extraction": account.last_extraction,
            "messages_available": len(account.messages),
        }

    def get_full_phone_data(self, phone_number: str) -> Dict[str, Any]:
        """Everything stored for a phone; empty fields when it is unknown."""
        account = self._load(phone_number)
        return {
            "phone_number": self.normalize(phone_number),
            "info": self.get_phone_info(phone_number),
            "messages": [m.to_dict() for m in account.messages] if account else [],
            "last_extraction": account.last_extraction if account else None,
            "is_active": account.active if account else False,
        }

    def list_accounts(self) -> List[Dict[str, Any]]:
        """Summaries of every stored phone."""
        summaries = []
        for key in self._backend.keys(PHONE_KEY_PREFIX):
            info = self.get_phone_info(key[len(PHONE_KEY_PREFIX):])
            if info is not None:
                summaries.append(info)
        return summaries

    def purge(self, phone_number: str) -> bool:
        """Delete a phone's account and history; False when it was unknown."""
        if not self.phone_exists(phone_number):
            return False
        self._backend.delete(self._key_for(phone_number))
        logger.info(f"Phone purged from store: {mask_phone(self.normalize(phone_number))}")
        return True


def _coerce_message(item: MessageInput, position: int) -> StoredMessage:
    if isinstance(item, StoredMessage):
        return item
    if isinstance(item, dict):
        return StoredMessage(
            index=int(item.get("index", position)),
            text=str(item["text"]),
            timestamp=item.get("timestamp") or utc_now_iso(),
        )
    return StoredMessage(index=position, text=str(item))
