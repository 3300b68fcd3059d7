"""Session manager exposing the connection, schema, and query commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Sequence

from .config import (
    AppConfig,
    ConnectionFileConfig,
    connection_filename,
    delete_connection_file,
    read_connection_files,
    save_connection_file,
)
from .credentials import CredentialStore, KeyringCredentialStore
from .directory import ConnectionDirectory
from .driver import AsyncpgDriver, PoolDriver
from .errors import AppError, ConfigError, CredentialError
from .models import ColumnInfo, ConnectionConfig, SchemaObject, TableStructure, new_connection_id
from .query import QueryExecutor, QueryResult
from .registry import PoolRegistry, connection_string_for
from .schema import SchemaInspector

LOG = logging.getLogger(__name__)


class SessionManager:
    """Owns the connection directory and pool registry and routes commands to them."""

    def __init__(
        self,
        *,
        config: AppConfig | None = None,
        credentials: CredentialStore | None = None,
        driver: PoolDriver | None = None,
        directory: ConnectionDirectory | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._credentials = credentials or KeyringCredentialStore(self._config.keyring_service)
        self._driver = driver or AsyncpgDriver(
            max_size=self._config.pool.max_size,
            acquire_timeout=self._config.pool.connect_timeout,
        )
        self._directory = directory or ConnectionDirectory()
        self._timeout = self._config.pool.connect_timeout
        self._registry = PoolRegistry(
            self._directory,
            self._credentials,
            self._driver,
            connect_timeout=self._timeout,
        )
        self._inspector = SchemaInspector(self._driver)
        self._executor = QueryExecutor(self._driver)

    @property
    def directory(self) -> ConnectionDirectory:
        return self._directory

    @property
    def registry(self) -> PoolRegistry:
        return self._registry

    @property
    def connections_dir(self) -> Path:
        """Directory holding the persisted connection files."""

        return self._config.resolved_connections_dir()

    # -- connection lifecycle -------------------------------------------------

    async def add_connection(self, config: ConnectionConfig, password: str) -> None:
        """Register a connection; the pool is lazy so unreachable servers are still saved."""

        self._directory.add(config)
        try:
            await asyncio.to_thread(self._credentials.put, config.id, password)
        except CredentialError:
            self._directory.remove(config.id)
            raise
        self._persist(config, password)
        await self._seed_lazy_pool(config, password)
        LOG.info("Added connection", extra={"connection_id": config.id})

    async def update_connection(self, config: ConnectionConfig, password: str = "") -> None:
        """Replace a connection's settings; an empty password keeps the stored one.

        The new settings are validated with an eager pool before anything is
        changed, so a failed update leaves the old pools and secret in place.
        """

        self._directory.get(config.id)
        effective_password = password or await asyncio.to_thread(self._credentials.get, config.id)
        pool = await self._driver.connect(
            connection_string_for(config, effective_password),
            eager=True,
            timeout=self._timeout,
        )
        try:
            await self._driver.probe(pool)
            if password:
                self._directory.get(config.id)
                await asyncio.to_thread(self._credentials.put, config.id, password)
            previous = self._directory.update(config)
        except AppError:
            await self._discard(pool)
            raise
        if connection_filename(previous) != connection_filename(config):
            self._forget_file(previous)
        self._persist(config, effective_password)
        await self._registry.invalidate(config.id)
        generation = self._registry.generation(config.id)
        if await self._registry.insert_if_current(config, pool, generation, replace=True) is None:
            # Removed or updated again while the old pools were closing.
            self._directory.get(config.id)
            return
        LOG.info("Updated connection", extra={"connection_id": config.id})

    async def remove_connection(self, connection_id: str) -> None:
        config = self._directory.remove(connection_id)
        if config is not None:
            self._forget_file(config)
        await self._registry.invalidate(connection_id)
        LOG.info("Removed connection", extra={"connection_id": connection_id})

    async def connect(self, connection_id: str) -> None:
        """Open and verify an eager pool for the primary database."""

        config = self._directory.get(connection_id)
        generation = self._registry.generation(connection_id)
        password = await asyncio.to_thread(self._credentials.get, connection_id)
        pool = await self._driver.connect(
            connection_string_for(config, password),
            eager=True,
            timeout=self._timeout,
        )
        try:
            await self._driver.probe(pool)
        except AppError:
            await self._discard(pool)
            raise
        if await self._registry.insert_if_current(config, pool, generation, replace=True) is None:
            self._directory.get(connection_id)
            return
        LOG.info("Connected", extra={"connection_id": connection_id})

    async def disconnect(self, connection_id: str) -> None:
        await self._registry.invalidate(connection_id)

    async def check_connection(self, connection_id: str) -> bool:
        """Probe the primary pool; any failure (or no pool at all) reads as ``False``."""

        pool = self._registry.get(connection_id)
        if pool is None:
            return False
        try:
            await self._driver.probe(pool)
        except AppError:
            return False
        return True

    def list_connections(self) -> tuple[ConnectionConfig, ...]:
        return self._directory.list()

    async def load_config_connections(self) -> list[ConnectionConfig]:
        """Import connection files; each load assigns fresh ids."""

        loaded: list[ConnectionConfig] = []
        for file_config in read_connection_files(self.connections_dir):
            config = await self._import(file_config)
            if config is not None:
                loaded.append(config)
        return loaded

    async def shutdown(self) -> None:
        await self._registry.close_all()

    # -- schema & queries -----------------------------------------------------

    async def list_databases(self, connection_id: str) -> list[str]:
        pool = await self._registry.resolve(connection_id)
        return await self._inspector.list_databases(pool)

    async def get_schema(self, connection_id: str, database: str) -> list[SchemaObject]:
        pool = await self._registry.resolve(connection_id, database)
        return await self._inspector.get_schema_objects(pool)

    async def get_columns(self, connection_id: str, database: str, schema: str, table: str) -> list[ColumnInfo]:
        pool = await self._registry.resolve(connection_id, database)
        return await self._inspector.get_columns(pool, schema, table)

    async def get_table_structure(
        self, connection_id: str, database: str, schema: str, table: str
    ) -> TableStructure:
        pool = await self._registry.resolve(connection_id, database)
        return await self._inspector.get_table_structure(pool, schema, table)

    async def get_primary_key_columns(
        self, connection_id: str, database: str, schema: str, table: str
    ) -> list[str]:
        pool = await self._registry.resolve(connection_id, database)
        return await self._inspector.get_primary_key_columns(pool, schema, table)

    async def execute_query(self, connection_id: str, database: str, sql: str) -> QueryResult:
        pool = await self._registry.resolve(connection_id, database)
        return await self._executor.execute(pool, sql)

    async def update_cell(
        self,
        connection_id: str,
        database: str,
        schema: str,
        table: str,
        column: str,
        primary_key_columns: Sequence[str],
        primary_key_values: Sequence[object],
        new_value: object,
    ) -> int:
        pool = await self._registry.resolve(connection_id, database)
        return await self._executor.update_cell(
            pool, schema, table, column, primary_key_columns, primary_key_values, new_value
        )

    async def insert_row(
        self,
        connection_id: str,
        database: str,
        schema: str,
        table: str,
        columns: Sequence[str],
        values: Sequence[object],
        column_types: Sequence[str],
    ) -> int:
        pool = await self._registry.resolve(connection_id, database)
        return await self._executor.insert_row(pool, schema, table, columns, values, column_types)

    async def delete_rows(
        self,
        connection_id: str,
        database: str,
        schema: str,
        table: str,
        primary_key_columns: Sequence[str],
        primary_key_values_list: Sequence[Sequence[object]],
    ) -> int:
        pool = await self._registry.resolve(connection_id, database)
        return await self._executor.delete_rows(
            pool, schema, table, primary_key_columns, primary_key_values_list
        )

    # -- helpers --------------------------------------------------------------

    async def _import(self, file_config: ConnectionFileConfig) -> ConnectionConfig | None:
        connection_id = new_connection_id()
        try:
            await asyncio.to_thread(self._credentials.put, connection_id, file_config.password)
        except CredentialError as exc:
            LOG.warning(
                "Skipping connection file; password could not be stored",
                extra={"connection_name": file_config.name, "error": str(exc)},
            )
            return None
        config = file_config.to_connection(connection_id)
        self._directory.add(config)
        await self._seed_lazy_pool(config, file_config.password)
        return config

    async def _seed_lazy_pool(self, config: ConnectionConfig, password: str) -> None:
        generation = self._registry.generation(config.id)
        try:
            pool = await self._driver.connect(
                connection_string_for(config, password),
                eager=False,
                timeout=self._timeout,
            )
        except AppError as exc:
            LOG.warning("Lazy pool unavailable", extra={"connection_id": config.id, "error": str(exc)})
            return
        if await self._registry.insert_if_current(config, pool, generation) is None:
            LOG.debug("Connection changed before its lazy pool was ready", extra={"connection_id": config.id})

    async def _discard(self, pool: Any) -> None:
        try:
            await self._driver.close(pool)
        except Exception:
            LOG.exception("Failed to close rejected pool")

    def _persist(self, config: ConnectionConfig, password: str) -> None:
        try:
            save_connection_file(self.connections_dir, config, password)
        except ConfigError as exc:
            LOG.warning("Could not persist connection", extra={"connection_id": config.id, "error": str(exc)})

    def _forget_file(self, config: ConnectionConfig) -> None:
        try:
            delete_connection_file(self.connections_dir, config)
        except ConfigError as exc:
            LOG.warning("Could not delete connection file", extra={"connection_id": config.id, "error": str(exc)})


__all__ = ["SessionManager"]
