"""Error kinds surfaced by the data-access core."""

from __future__ import annotations


class AppError(RuntimeError):
    """Base error; ``str()`` yields the user-facing ``"<Kind> error: <detail>"`` message."""

    label = "Application error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.label}: {self.detail}"


class ConnectionFailedError(AppError):
    """Raised when a server cannot be reached or rejects the credentials."""

    label = "Connection error"


class ConnectionNotFoundError(ConnectionFailedError):
    """Raised when a connection id is not registered."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection not found: {connection_id}")
        self.connection_id = connection_id


class DatabaseError(AppError):
    """Raised when the server rejects a statement."""

    label = "Database error"


class ConfigError(AppError):
    """Raised for config directory and file problems."""

    label = "Configuration error"


class CredentialError(AppError):
    """Raised when the credential store cannot satisfy a request."""

    label = "Keychain error"


class CredentialNotFoundError(CredentialError):
    """No secret is stored for the requested connection."""


class CredentialStoreUnavailableError(CredentialError):
    """The backing secret store failed."""


class ValidationError(AppError):
    """Raised for unsafe identifiers or mismatched key/value shapes."""

    label = "Validation error"


__all__ = [
    "AppError",
    "ConfigError",
    "ConnectionFailedError",
    "ConnectionNotFoundError",
    "CredentialError",
    "CredentialNotFoundError",
    "CredentialStoreUnavailableError",
    "DatabaseError",
    "ValidationError",
]
