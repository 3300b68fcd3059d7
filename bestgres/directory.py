"""In-memory directory of known connection configs."""

from __future__ import annotations

import threading
from typing import Iterable

from .errors import ConnectionNotFoundError
from .models import ConnectionConfig


class ConnectionDirectory:
    """Ordered, lock-guarded collection of ``ConnectionConfig`` entries keyed by id."""

    def __init__(self, entries: Iterable[ConnectionConfig] = ()) -> None:
        self._lock = threading.Lock()
        self._entries: list[ConnectionConfig] = []
        for entry in entries:
            self.add(entry)

    def add(self, config: ConnectionConfig) -> None:
        """Append a config; ids are assigned by callers and must be unique."""

        with self._lock:
            if any(entry.id == config.id for entry in self._entries):
                raise ValueError(f"Connection id '{config.id}' is already registered.")
            self._entries.append(config)

    def update(self, config: ConnectionConfig) -> ConnectionConfig:
        """Replace the entry sharing ``config.id``; returns the previous entry."""

        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.id == config.id:
                    self._entries[index] = config
                    return entry
        raise ConnectionNotFoundError(config.id)

    def remove(self, connection_id: str) -> ConnectionConfig | None:
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.id == connection_id:
                    return self._entries.pop(index)
        return None

    def find(self, connection_id: str) -> ConnectionConfig | None:
        with self._lock:
            for entry in self._entries:
                if entry.id == connection_id:
                    return entry
        return None

    def get(self, connection_id: str) -> ConnectionConfig:
        """Like ``find`` but raises ``ConnectionNotFoundError`` when absent."""

        config = self.find(connection_id)
        if config is None:
            raise ConnectionNotFoundError(connection_id)
        return config

    def list(self) -> tuple[ConnectionConfig, ...]:
        """Snapshot of all entries in insertion order."""

        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["ConnectionDirectory"]
