"""Credential store adapters keyed by connection id."""

from __future__ import annotations

import threading
from typing import Mapping, Protocol, runtime_checkable

import keyring
from keyring.errors import KeyringError

from .errors import CredentialNotFoundError, CredentialStoreUnavailableError

DEFAULT_SERVICE = "bestgres"


@runtime_checkable
class CredentialStore(Protocol):
    """Protocol implemented by secret stores."""

    def put(self, connection_id: str, secret: str) -> None:
        """Store ``secret`` for the connection, replacing any previous value."""

    def get(self, connection_id: str) -> str:
        """Return the stored secret or raise ``CredentialError``."""


class KeyringCredentialStore:
    """Credential store backed by the OS keychain via ``keyring``."""

    def __init__(self, service: str = DEFAULT_SERVICE) -> None:
        self._service = service

    def put(self, connection_id: str, secret: str) -> None:
        try:
            keyring.set_password(self._service, connection_id, secret)
        except KeyringError as exc:
            raise CredentialStoreUnavailableError(str(exc) or exc.__class__.__name__) from exc

    def get(self, connection_id: str) -> str:
        try:
            secret = keyring.get_password(self._service, connection_id)
        except KeyringError as exc:
            raise CredentialStoreUnavailableError(str(exc) or exc.__class__.__name__) from exc
        if secret is None:
            raise CredentialNotFoundError(f"No password stored for connection '{connection_id}'")
        return secret


class MemoryCredentialStore:
    """In-process credential store used by tests and headless sessions."""

    def __init__(self, secrets: Mapping[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(secrets or {})
        self._lock = threading.Lock()

    def put(self, connection_id: str, secret: str) -> None:
        with self._lock:
            self._secrets[connection_id] = secret

    def get(self, connection_id: str) -> str:
        with self._lock:
            try:
                return self._secrets[connection_id]
            except KeyError:
                raise CredentialNotFoundError(
                    f"No password stored for connection '{connection_id}'"
                ) from None


__all__ = [
    "CredentialStore",
    "DEFAULT_SERVICE",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
]
