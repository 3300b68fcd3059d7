"""Data-access core for the bestgres Postgres browser."""

from __future__ import annotations

__version__ = "0.1.0"

from .commands import CommandRegistry, CommandResult, build_command_registry
from .config import AppConfig, ConnectionFileConfig, load_config
from .credentials import CredentialStore, KeyringCredentialStore, MemoryCredentialStore
from .directory import ConnectionDirectory
from .driver import AsyncpgDriver, PoolDriver, build_connection_string
from .errors import (
    AppError,
    ConfigError,
    ConnectionFailedError,
    ConnectionNotFoundError,
    CredentialError,
    DatabaseError,
    ValidationError,
)
from .models import ConnectionConfig
from .query import QueryResult
from .registry import PoolRegistry
from .session import SessionManager

__all__ = [
    "AppConfig",
    "AppError",
    "AsyncpgDriver",
    "CommandRegistry",
    "CommandResult",
    "ConfigError",
    "ConnectionConfig",
    "ConnectionDirectory",
    "ConnectionFailedError",
    "ConnectionFileConfig",
    "ConnectionNotFoundError",
    "CredentialError",
    "CredentialStore",
    "DatabaseError",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
    "PoolDriver",
    "PoolRegistry",
    "QueryResult",
    "SessionManager",
    "ValidationError",
    "__version__",
    "build_command_registry",
    "build_connection_string",
    "load_config",
]
