"""App settings and persisted connection files."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import tomllib

import pydantic
from pydantic import BaseModel, Field

from .credentials import DEFAULT_SERVICE
from .driver import DEFAULT_MAX_SIZE, DEFAULT_TIMEOUT
from .errors import ConfigError
from .models import ConnectionConfig

LOG = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "bestgres"
CONFIG_FILE = CONFIG_DIR / "config.toml"


class PoolSettings(BaseModel):
    """Sizing and timeout applied to every pool."""

    connect_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    max_size: int = Field(default=DEFAULT_MAX_SIZE, ge=1)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    keyring_service: str = DEFAULT_SERVICE
    connections_dir: Path | None = None
    pool: PoolSettings = Field(default_factory=PoolSettings)

    def resolved_connections_dir(self) -> Path:
        return self.connections_dir or CONFIG_DIR / "connections"


class ConnectionFileConfig(BaseModel):
    """One connection as stored on disk; unlike ``ConnectionConfig`` it carries the password."""

    name: str
    host: str
    port: int = Field(ge=1, le=65535)
    user: str
    password: str
    database: str
    ssl: bool = False

    @classmethod
    def from_connection(cls, config: ConnectionConfig, password: str) -> ConnectionFileConfig:
        return cls(
            name=config.name,
            host=config.host,
            port=config.port,
            user=config.user,
            password=password,
            database=config.database,
            ssl=config.ssl,
        )

    def to_connection(self, connection_id: str) -> ConnectionConfig:
        return ConnectionConfig(
            id=connection_id,
            name=self.name,
            host=self.host,
            port=self.port,
            user=self.user,
            database=self.database,
            ssl=self.ssl,
        )


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing or malformed."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.warning("Ignoring unreadable config file", extra={"path": str(CONFIG_FILE)})
        return AppConfig()
    try:
        return AppConfig(**data)
    except pydantic.ValidationError:
        LOG.warning("Ignoring invalid config file", extra={"path": str(CONFIG_FILE)})
        return AppConfig()


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    service = raw.get("keyring_service")
    if isinstance(service, str) and service:
        data["keyring_service"] = service
    directory = raw.get("connections_dir")
    if isinstance(directory, str) and directory:
        data["connections_dir"] = Path(directory).expanduser()
    pool = raw.get("pool")
    if isinstance(pool, dict):
        settings: dict[str, object] = {}
        timeout = pool.get("connect_timeout")
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
            settings["connect_timeout"] = float(timeout)
        max_size = pool.get("max_size")
        if isinstance(max_size, int) and not isinstance(max_size, bool):
            settings["max_size"] = max_size
        data["pool"] = settings
    return data


def ensure_connections_dir(directory: Path) -> Path:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Cannot create config dir: {exc}") from exc
    return directory


def connection_filename(config: ConnectionConfig) -> str:
    """File name derived from the connection name, falling back to the id prefix."""

    safe_name = "".join(
        ch if ch.isalnum() or ch in "-_" else "_" for ch in config.name
    ).lower()
    return f"{safe_name or config.id[:8]}.json"


def save_connection_file(directory: Path, config: ConnectionConfig, password: str) -> Path:
    ensure_connections_dir(directory)
    path = directory / connection_filename(config)
    payload = ConnectionFileConfig.from_connection(config, password).model_dump()
    try:
        path.write_text(json.dumps(payload, indent=2))
    except OSError as exc:
        raise ConfigError(f"Cannot write config file: {exc}") from exc
    return path


def delete_connection_file(directory: Path, config: ConnectionConfig) -> None:
    path = directory / connection_filename(config)
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        raise ConfigError(f"Cannot delete config file: {exc}") from exc


def read_connection_files(directory: Path) -> list[ConnectionFileConfig]:
    """Parse every ``*.json`` file in ``directory``, skipping unreadable or invalid ones."""

    ensure_connections_dir(directory)
    try:
        paths = sorted(path for path in directory.iterdir() if path.suffix == ".json")
    except OSError as exc:
        raise ConfigError(f"Cannot read config dir: {exc}") from exc
    configs: list[ConnectionFileConfig] = []
    for path in paths:
        try:
            configs.append(ConnectionFileConfig.model_validate_json(path.read_text()))
        except (OSError, ValueError):
            LOG.warning("Skipping connection file", extra={"path": str(path)})
    return configs


__all__ = [
    "AppConfig",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "ConnectionFileConfig",
    "PoolSettings",
    "connection_filename",
    "delete_connection_file",
    "ensure_connections_dir",
    "load_config",
    "read_connection_files",
    "save_connection_file",
]
