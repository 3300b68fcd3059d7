"""Query execution and guarded row mutations."""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from typing import Any, Sequence

from .coercion import coerce_row
from .driver import PoolDriver
from .errors import ValidationError


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized query output returned to the UI."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    row_count: int
    execution_time_ms: int


_TYPE_NAME = re.compile(
    r"[A-Za-z_][A-Za-z0-9_]*(?: [A-Za-z_][A-Za-z0-9_]*)*"
    r"(?:\(\s*\d+\s*(?:,\s*\d+\s*)?\))?"
    r"(?: [A-Za-z_][A-Za-z0-9_]*)*"
    r"(?:\[\])*"
)


def validate_identifier(name: str) -> str:
    """Ensure ``name`` is safe to interpolate as a quoted SQL identifier."""

    if not name:
        raise ValidationError("Identifier must not be empty")
    if name[0].isdigit() or not all(ch.isalnum() or ch == "_" for ch in name):
        raise ValidationError(f"Invalid identifier: {name!r}")
    return name


def quote_identifier(name: str) -> str:
    return f'"{validate_identifier(name)}"'


def validate_type_name(type_name: str) -> str:
    """Accept Postgres type names such as ``numeric(10,2)`` or ``timestamp with time zone``."""

    if not _TYPE_NAME.fullmatch(type_name):
        raise ValidationError(f"Invalid type name: {type_name!r}")
    return type_name


def bind_value(value: object) -> object:
    """Map a JSON value to its bound-parameter form."""

    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def build_update_statement(schema: str, table: str, column: str, pk_columns: Sequence[str]) -> str:
    target = f"{quote_identifier(schema)}.{quote_identifier(table)}"
    assignment = f"{quote_identifier(column)} = $1"
    if not pk_columns:
        raise ValidationError("No primary key columns supplied; cannot identify the row")
    conditions = " AND ".join(
        f"{quote_identifier(pk)} = ${index}" for index, pk in enumerate(pk_columns, start=2)
    )
    return f"UPDATE {target} SET {assignment} WHERE {conditions}"


def build_insert_statement(
    schema: str,
    table: str,
    columns: Sequence[str],
    column_types: Sequence[str],
) -> str:
    target = f"{quote_identifier(schema)}.{quote_identifier(table)}"
    names = ", ".join(quote_identifier(column) for column in columns)
    placeholders = ", ".join(
        f"${index}::{validate_type_name(type_name)}"
        for index, type_name in enumerate(column_types, start=1)
    )
    return f"INSERT INTO {target} ({names}) VALUES ({placeholders})"


def build_delete_statement(schema: str, table: str, pk_columns: Sequence[str], row_count: int) -> str:
    target = f"{quote_identifier(schema)}.{quote_identifier(table)}"
    quoted = [quote_identifier(pk) for pk in pk_columns]
    if not quoted:
        raise ValidationError("No primary key columns supplied; cannot identify rows")
    groups: list[str] = []
    index = 1
    for _ in range(row_count):
        parts: list[str] = []
        for name in quoted:
            parts.append(f"{name} = ${index}")
            index += 1
        groups.append("(" + " AND ".join(parts) + ")")
    return f"DELETE FROM {target} WHERE " + " OR ".join(groups)


class QueryExecutor:
    """Runs caller SQL and the guarded single-row mutations."""

    def __init__(self, driver: PoolDriver) -> None:
        self._driver = driver

    async def execute(self, pool: Any, sql: str) -> QueryResult:
        """Run ``sql`` verbatim and coerce every cell."""

        started = time.perf_counter()
        columns, rows = await self._driver.fetch(pool, sql)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        coerced = tuple(coerce_row(row) for row in rows)
        return QueryResult(
            columns=tuple(columns),
            rows=coerced,
            row_count=len(coerced),
            execution_time_ms=elapsed_ms,
        )

    async def update_cell(
        self,
        pool: Any,
        schema: str,
        table: str,
        column: str,
        pk_columns: Sequence[str],
        pk_values: Sequence[object],
        new_value: object,
    ) -> int:
        """Update one cell identified by its primary key; returns affected rows (0 = no match)."""

        for name in (schema, table, column, *pk_columns):
            validate_identifier(name)
        if not pk_columns:
            raise ValidationError("No primary key columns supplied; cannot identify the row")
        if len(pk_columns) != len(pk_values):
            raise ValidationError(
                f"Primary key count mismatch: {len(pk_columns)} column(s), {len(pk_values)} value(s)"
            )
        sql = build_update_statement(schema, table, column, pk_columns)
        args = [bind_value(new_value), *(bind_value(value) for value in pk_values)]
        return await self._driver.execute(pool, sql, *args)

    async def insert_row(
        self,
        pool: Any,
        schema: str,
        table: str,
        columns: Sequence[str],
        values: Sequence[object],
        column_types: Sequence[str],
    ) -> int:
        for name in (schema, table, *columns):
            validate_identifier(name)
        for type_name in column_types:
            validate_type_name(type_name)
        if not columns:
            raise ValidationError("Provide at least one column to insert")
        if not len(columns) == len(values) == len(column_types):
            raise ValidationError(
                f"Column count mismatch: {len(columns)} column(s), {len(values)} value(s), "
                f"{len(column_types)} type(s)"
            )
        sql = build_insert_statement(schema, table, columns, column_types)
        return await self._driver.execute(pool, sql, *(bind_value(value) for value in values))

    async def delete_rows(
        self,
        pool: Any,
        schema: str,
        table: str,
        pk_columns: Sequence[str],
        pk_values_list: Sequence[Sequence[object]],
    ) -> int:
        """Delete rows identified by primary key value tuples."""

        for name in (schema, table, *pk_columns):
            validate_identifier(name)
        if not pk_columns:
            raise ValidationError("No primary key columns supplied; cannot identify rows")
        for values in pk_values_list:
            if len(values) != len(pk_columns):
                raise ValidationError(
                    f"Primary key count mismatch: {len(pk_columns)} column(s), {len(values)} value(s)"
                )
        if not pk_values_list:
            return 0
        sql = build_delete_statement(schema, table, pk_columns, len(pk_values_list))
        args = [bind_value(value) for values in pk_values_list for value in values]
        return await self._driver.execute(pool, sql, *args)


__all__ = [
    "QueryExecutor",
    "QueryResult",
    "bind_value",
    "build_delete_statement",
    "build_insert_statement",
    "build_update_statement",
    "quote_identifier",
    "validate_identifier",
    "validate_type_name",
]
