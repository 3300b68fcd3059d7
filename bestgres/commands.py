"""Named command dispatch for the presentation layer."""

from __future__ import annotations

import dataclasses
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from .errors import AppError
from .session import SessionManager

LOG = logging.getLogger(__name__)

CommandHandler = Callable[..., Awaitable[object] | object]

COMMAND_NAMES: tuple[str, ...] = (
    "add_connection",
    "update_connection",
    "remove_connection",
    "connect",
    "disconnect",
    "check_connection",
    "list_connections",
    "load_config_connections",
    "list_databases",
    "get_schema",
    "get_columns",
    "get_table_structure",
    "get_primary_key_columns",
    "execute_query",
    "update_cell",
    "insert_row",
    "delete_rows",
)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Either a success value or a user-facing error string."""

    ok: bool
    value: object = None
    error: str | None = None

    def to_payload(self) -> dict[str, object]:
        """JSON-ready view of the result."""

        if not self.ok:
            return {"ok": False, "error": self.error}
        return {"ok": True, "value": to_payload(self.value)}


def to_payload(value: object) -> object:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: to_payload(getattr(value, field.name)) for field in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(key): to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    return value


class CommandRegistry:
    """Maps command names to handlers and converts ``AppError`` into error results."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandHandler] = {}

    def register(self, name: str, handler: CommandHandler | None) -> None:
        if handler is None:
            raise ValueError(f"Command '{name}' is missing a handler")
        self._commands[name] = handler

    def register_many(self, handlers: Mapping[str, CommandHandler]) -> None:
        for name, handler in handlers.items():
            self.register(name, handler)

    def list_commands(self) -> list[str]:
        return list(self._commands)

    async def invoke(self, name: str, **kwargs: Any) -> CommandResult:
        """Run a registered command; unknown names raise ``KeyError``."""

        handler = self._commands[name]
        try:
            result = handler(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except AppError as exc:
            LOG.debug("Command failed", extra={"command": name, "error": str(exc)})
            return CommandResult(ok=False, error=str(exc))
        return CommandResult(ok=True, value=result)


def build_command_registry(session: SessionManager) -> CommandRegistry:
    registry = CommandRegistry()
    registry.register_many({name: getattr(session, name) for name in COMMAND_NAMES})
    return registry


__all__ = [
    "COMMAND_NAMES",
    "CommandRegistry",
    "CommandResult",
    "build_command_registry",
    "to_payload",
]
