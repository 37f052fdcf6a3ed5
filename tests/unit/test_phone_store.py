"""Tests for the persistent phone store."""

import pytest

from registrar.core.exceptions import InvalidPhoneNumberError
from registrar.services.session.backends import InMemoryBackend
from registrar.services.session.models import StoredMessage
from registrar.services.session.phone_store import PhoneSessionStore


class TestNormalize:
    """Tests for phone identity normalization."""

    @pytest.mark.parametrize(
        "raw", ["+1 415-555-0100", "14155550100", "+14155550100", "(1) 415.555.0100"]
    )
    def test_separators_and_sign_are_ignored(self, raw):
        assert PhoneSessionStore.normalize(raw) == "14155550100"

    def test_extra_digit_is_a_different_identity(self, phone_store):
        phone_store.register_phone("+14155550100")
        assert phone_store.phone_exists("141555501000") is False

    def test_empty_number_rejected(self, phone_store):
        with pytest.raises(InvalidPhoneNumberError):
            phone_store.register_phone("+-- ")


class TestRegisterPhone:
    """Tests for idempotent account creation."""

    def test_get_or_create(self, phone_store):
        first = phone_store.register_phone("+14155550100")
        second = phone_store.register_phone("1 415 555 0100")
        assert first.phone_number == "14155550100"
        assert second.created_at == first.created_at
        assert phone_store.list_accounts()[0]["phone_number"] == "14155550100"
        assert len(phone_store.list_accounts()) == 1

    def test_phone_exists(self, phone_store):
        assert phone_store.phone_exists("+14155550100") is False
        phone_store.register_phone("+14155550100")
        assert phone_store.phone_exists("+1-415-555-0100") is True
        assert phone_store.phone_exists("") is False


class TestStoreMessages:
    """Tests for message history merging."""

    def test_same_text_stored_once(self, phone_store):
        phone_store.store_messages("+1 415-555-0100", [{"text": "A"}])
        phone_store.store_messages("+1 415-555-0100", [{"text": "A"}])

        messages = phone_store.get_messages("14155550100")
        assert [m.text for m in messages] == ["A"]

    def test_merge_keeps_insertion_order(self, phone_store):
        phone_store.store_messages("14155550100", ["A", "B"])
        merged = phone_store.store_messages("14155550100", ["C", "A", "D"])
        assert [m.text for m in merged] == ["A", "B", "C", "D"]

    def test_duplicates_within_one_batch_collapse(self, phone_store):
        merged = phone_store.store_messages("14155550100", ["A", "A"])
        assert len(merged) == 1

    def test_identity_is_text_not_index_or_timestamp(self, phone_store):
        phone_store.store_messages(
            "14155550100", [StoredMessage(index=0, text="A", timestamp="2024-01-01T00:00:00")]
        )
        merged = phone_store.store_messages(
            "14155550100", [StoredMessage(index=5, text="A", timestamp="2025-01-01T00:00:00")]
        )
        assert len(merged) == 1
        assert merged[0].timestamp == "2024-01-01T00:00:00"

    def test_updates_last_extraction(self, phone_store):
        phone_store.register_phone("14155550100")
        assert phone_store.get_account("14155550100").last_extraction is None
        phone_store.store_messages("14155550100", [])
        assert phone_store.get_account("14155550100").last_extraction is not None

    def test_unknown_phone_has_no_messages(self, phone_store):
        assert phone_store.get_messages("+19999999999") == []

    def test_reads_without_digits_find_nothing(self, phone_store):
        assert phone_store.get_messages("abc") == []
        assert phone_store.get_account("abc") is None
        assert phone_store.get_phone_info("+-- ") is None
        assert phone_store.phone_exists("abc") is False
        assert phone_store.deactivate("abc") is False
        assert phone_store.purge("abc") is False

    def test_writes_without_digits_rejected(self, phone_store):
        with pytest.raises(InvalidPhoneNumberError):
            phone_store.store_messages("abc", ["A"])

    def test_history_survives_a_new_store_on_the_same_backing(self, backend):
        PhoneSessionStore(backend).store_messages("14155550100", ["A"])
        restarted = PhoneSessionStore(backend)
        assert [m.text for m in restarted.get_messages("+14155550100")] == ["A"]


class TestSessionTracking:
    """Tests for session metadata kept on the account."""

    def test_attach_and_record_status(self, phone_store):
        phone_store.attach_session("+14155550100", "s1")
        phone_store.record_status("+14155550100", "s1", "awaiting_otp_value")

        info = phone_store.get_phone_info("14155550100")
        assert info["session_id"] == "s1"
        assert info["active"] is True
        assert info["last_status"] == "awaiting_otp_value"

        phone_store.record_status("+14155550100", "s1", "failed", error="boom", terminal=True)
        info = phone_store.get_phone_info("14155550100")
        assert info["active"] is False
        assert info["last_error"] == "boom"

    def test_status_of_stale_session_ignored(self, phone_store):
        phone_store.attach_session("+14155550100", "s2")
        phone_store.record_status("+14155550100", "s1", "cancelled", terminal=True)
        info = phone_store.get_phone_info("14155550100")
        assert info["session_id"] == "s2"
        assert info["active"] is True

    def test_deactivate(self, phone_store):
        assert phone_store.deactivate("+14155550100") is False
        phone_store.attach_session("+14155550100", "s1")
        assert phone_store.deactivate("+14155550100") is True
        assert phone_store.get_account("+14155550100").active is False

    def test_full_phone_data(self, phone_store):
        phone_store.attach_session("+14155550100", "s1")
        phone_store.store_messages("+14155550100", ["Your code is 482913"])

        data = phone_store.get_full_phone_data("+1 415 555 0100")
        assert data["phone_number"] == "14155550100"
        assert data["info"]["messages_available"] == 1
        assert data["messages"][0]["text"] == "Your code is 482913"
        assert data["is_active"] is True

    def test_full_phone_data_unknown(self, phone_store):
        data = phone_store.get_full_phone_data("+19999999999")
        assert data["info"] is None
        assert data["messages"] == []
        assert data["is_active"] is False

    def test_purge(self, phone_store):
        phone_store.store_messages("14155550100", ["A"])
        assert phone_store.purge("+14155550100") is True
        assert phone_store.phone_exists("14155550100") is False
        assert phone_store.purge("+14155550100") is False


def test_stored_values_are_plain_json(backend):
    store = PhoneSessionStore(backend)
    store.store_messages("14155550100", ["A"])
    raw = backend.get("phone:14155550100")
    assert raw["messages"][0]["text"] == "A"
    assert backend.keys("phone:") == ["phone:14155550100"]
    assert isinstance(backend, InMemoryBackend)
