"""Unit tests for secure credential store helpers."""

from __future__ import annotations

import pytest
from keyring.backends import fail as keyring_fail
from keyring.errors import KeyringError

from storia.credentials import KeyringCredentialStore


class FakeKeyringModule:
    """In-memory keyring stand-in for deterministic credential store tests."""

    def __init__(self, backend: object | None = None) -> None:
        """Initialize fake storage dictionary and active backend."""

        self._storage: dict[tuple[str, str], str] = {}
        self._backend = backend if backend is not None else object()

    def get_keyring(self) -> object:
        """Return the active backend object."""

        return self._backend

    def get_password(self, service_name: str, account_name: str) -> str | None:
        """Return previously stored password if present."""

        return self._storage.get((service_name, account_name))

    def set_password(self, service_name: str, account_name: str, value: str) -> None:
        """Store password value for the service/account key."""

        self._storage[(service_name, account_name)] = value

    def delete_password(self, service_name: str, account_name: str) -> None:
        """Delete password value for the service/account key."""

        self._storage.pop((service_name, account_name), None)


class LockedKeyringModule(FakeKeyringModule):
    """Keyring stand-in whose reads fail like a locked OS keychain."""

    def get_password(self, service_name: str, account_name: str) -> str | None:
        """Raise a keyring error for every read."""

        raise KeyringError("keychain is locked")


def test_keyring_store_roundtrip_set_get_clear() -> None:
    """Keyring store should set/get/clear API key values via keyring backend."""

    store = KeyringCredentialStore(backend=FakeKeyringModule())

    assert store.is_available() is True
    assert store.get_api_key() is None

    store.set_api_key("  abc123  ")
    assert store.get_api_key() == "abc123"

    assert store.clear_api_key() is True
    assert store.get_api_key() is None
    assert store.clear_api_key() is False


def test_keyring_store_reports_unavailable_fail_backend() -> None:
    """The failing fallback backend should make the store unavailable."""

    store = KeyringCredentialStore(backend=FakeKeyringModule(backend=keyring_fail.Keyring()))

    assert store.is_available() is False
    assert store.get_api_key() is None
    with pytest.raises(RuntimeError, match="unavailable"):
        store.set_api_key("abc123")


def test_keyring_store_rejects_blank_key_and_survives_read_errors() -> None:
    """Blank keys should be rejected and backend read errors treated as missing."""

    store = KeyringCredentialStore(backend=LockedKeyringModule())

    with pytest.raises(ValueError, match="non-empty"):
        store.set_api_key("   ")
    assert store.get_api_key() is None
