"""Pool registry: one live pool per (connection, database) key."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .credentials import CredentialStore
from .directory import ConnectionDirectory
from .driver import DEFAULT_TIMEOUT, PoolDriver, build_connection_string
from .errors import AppError
from .models import ConnectionConfig

LOG = logging.getLogger(__name__)

Generation = tuple[int, int]


def pool_key(config: ConnectionConfig, database: str | None = None) -> str:
    """Return ``id`` for the primary database, ``id:database`` otherwise."""

    if not database or database == config.database:
        return config.id
    return f"{config.id}:{database}"


def connection_string_for(config: ConnectionConfig, password: str, database: str | None = None) -> str:
    return build_connection_string(
        config.host,
        config.port,
        config.user,
        password,
        database or config.database,
        config.ssl,
    )


class PoolRegistry:
    """Concurrent cache of pools keyed by pool key.

    The structural lock only guards dict changes; pool creation is serialized
    per key and pools are closed after they leave the map.

    Every ``invalidate`` bumps the connection's generation (``close_all`` bumps
    all of them). A pool built before the bump, or from a config that is no
    longer the directory entry, is closed instead of being registered.
    """

    def __init__(
        self,
        directory: ConnectionDirectory,
        credentials: CredentialStore,
        driver: PoolDriver,
        *,
        connect_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._directory = directory
        self._credentials = credentials
        self._driver = driver
        self._connect_timeout = connect_timeout
        self._pools: dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0

    def get(self, key: str) -> Any | None:
        return self._pools.get(key)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._pools)

    def generation(self, connection_id: str) -> Generation:
        """Token to pass to ``insert_if_current`` for a pool about to be built."""

        return self._epoch, self._generations.get(connection_id, 0)

    async def resolve(self, connection_id: str, database: str | None = None) -> Any:
        """Return the pool for the key, creating an eager pool if none is registered."""

        while True:
            config = self._directory.get(connection_id)
            key = pool_key(config, database)
            pool = self._pools.get(key)
            if pool is not None:
                LOG.debug("Reusing pool", extra={"pool_key": key})
                return pool
            pool = await self._create(config, key, database)
            if pool is not None:
                return pool
            LOG.debug("Connection changed while connecting; retrying", extra={"pool_key": key})

    async def insert_if_current(
        self,
        config: ConnectionConfig,
        pool: Any,
        generation: Generation,
        *,
        database: str | None = None,
        replace: bool = False,
    ) -> Any | None:
        """Register ``pool`` unless the connection changed after ``generation`` was read.

        Returns the registered pool, which is the existing one when ``replace``
        is false and the key is taken. Returns ``None`` after closing ``pool``
        when it is stale.
        """

        key = pool_key(config, database)
        async with self._lock:
            stale = generation != self.generation(config.id) or self._directory.find(config.id) != config
            previous = None if stale else self._pools.get(key)
            installed = not stale and (previous is None or replace)
            if installed:
                self._pools[key] = pool
        if stale:
            LOG.debug("Discarding stale pool", extra={"pool_key": key})
            await self._close(key, pool)
            return None
        if not installed:
            LOG.debug("Discarding duplicate pool", extra={"pool_key": key})
            await self._close(key, pool)
            return previous
        if previous is not None and previous is not pool:
            await self._close(key, previous)
        return pool

    async def insert_or_replace(self, key: str, pool: Any) -> None:
        """Install ``pool`` under ``key``, closing whatever it replaces."""

        async with self._lock:
            previous = self._pools.get(key)
            self._pools[key] = pool
        if previous is not None and previous is not pool:
            await self._close(key, previous)

    async def invalidate(self, connection_id: str) -> tuple[str, ...]:
        """Remove and close every pool belonging to ``connection_id``."""

        prefix = f"{connection_id}:"
        async with self._lock:
            self._generations[connection_id] = self._generations.get(connection_id, 0) + 1
            keys = tuple(key for key in self._pools if key == connection_id or key.startswith(prefix))
            removed = [(key, self._pools.pop(key)) for key in keys]
            for key in keys:
                self._key_locks.pop(key, None)
        for key, pool in removed:
            await self._close(key, pool)
        if keys:
            LOG.info("Invalidated pools", extra={"connection_id": connection_id, "pool_keys": keys})
        return keys

    async def close_all(self) -> None:
        async with self._lock:
            self._epoch += 1
            removed = list(self._pools.items())
            self._pools.clear()
            self._key_locks.clear()
        for key, pool in removed:
            await self._close(key, pool)

    async def _create(self, config: ConnectionConfig, key: str, database: str | None) -> Any | None:
        key_lock = await self._key_lock(key)
        async with key_lock:
            pool = self._pools.get(key)
            if pool is not None:
                return pool
            generation = self.generation(config.id)
            try:
                password = await asyncio.to_thread(self._credentials.get, config.id)
                dsn = connection_string_for(config, password, database)
                LOG.debug("Creating pool", extra={"pool_key": key})
                pool = await self._driver.connect(dsn, eager=True, timeout=self._connect_timeout)
            except AppError:
                await self._drop_key_lock(key, key_lock)
                raise
            return await self.insert_if_current(config, pool, generation, database=database)

    async def _key_lock(self, key: str) -> asyncio.Lock:
        async with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = asyncio.Lock()
            return lock

    async def _drop_key_lock(self, key: str, lock: asyncio.Lock) -> None:
        async with self._lock:
            if self._key_locks.get(key) is lock:
                del self._key_locks[key]

    async def _close(self, key: str, pool: Any) -> None:
        try:
            await self._driver.close(pool)
        except Exception:
            LOG.exception("Failed to close pool", extra={"pool_key": key})


__all__ = ["Generation", "PoolRegistry", "connection_string_for", "pool_key"]
