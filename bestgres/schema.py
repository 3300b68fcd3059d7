"""Read-only catalog queries mapped into schema metadata snapshots."""

from __future__ import annotations

from typing import Any

from .driver import PoolDriver
from .models import (
    ColumnDetail,
    ColumnInfo,
    ConstraintInfo,
    ForeignKeyInfo,
    IndexInfo,
    SchemaObject,
    SchemaObjectType,
    TableStructure,
)

CONSTRAINT_TYPES = {
    "p": "PRIMARY KEY",
    "u": "UNIQUE",
    "f": "FOREIGN KEY",
    "c": "CHECK",
    "x": "EXCLUDE",
    "t": "TRIGGER",
}


class SchemaInspector:
    """Issues fixed catalog queries through the driver; nothing is cached."""

    _DATABASES_QUERY = """
        SELECT datname
        FROM pg_database
        WHERE datistemplate = false
        ORDER BY datname
    """

    _OBJECTS_QUERY = """
        SELECT table_name AS name, table_schema AS schema, table_type
        FROM information_schema.tables
        WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
        ORDER BY table_schema, table_name
    """

    _COLUMNS_QUERY = """
        SELECT
            c.column_name AS name,
            c.data_type,
            c.is_nullable = 'YES' AS is_nullable,
            COALESCE(
                (SELECT true FROM information_schema.key_column_usage kcu
                 JOIN information_schema.table_constraints tc
                   ON kcu.constraint_name = tc.constraint_name
                  AND kcu.table_schema = tc.table_schema
                 WHERE tc.constraint_type = 'PRIMARY KEY'
                   AND kcu.table_schema = c.table_schema
                   AND kcu.table_name = c.table_name
                   AND kcu.column_name = c.column_name
                 LIMIT 1),
                false
            ) AS is_primary_key
        FROM information_schema.columns c
        WHERE c.table_schema = $1 AND c.table_name = $2
        ORDER BY c.ordinal_position
    """

    _PRIMARY_KEY_QUERY = """
        SELECT kcu.column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON kcu.constraint_name = tc.constraint_name
         AND kcu.table_schema = tc.table_schema
         AND kcu.table_name = tc.table_name
        WHERE tc.constraint_type = 'PRIMARY KEY'
          AND tc.table_schema = $1
          AND tc.table_name = $2
        ORDER BY kcu.ordinal_position
    """

    _COLUMN_DETAILS_QUERY = """
        SELECT
            column_name AS name,
            data_type,
            is_nullable = 'YES' AS is_nullable,
            column_default AS default_value
        FROM information_schema.columns
        WHERE table_schema = $1 AND table_name = $2
        ORDER BY ordinal_position
    """

    _INDEXES_QUERY = """
        SELECT
            i.relname AS name,
            ix.indisunique AS is_unique,
            ix.indisprimary AS is_primary,
            pg_get_indexdef(ix.indexrelid) AS definition
        FROM pg_index ix
        JOIN pg_class i ON i.oid = ix.indexrelid
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        WHERE n.nspname = $1 AND t.relname = $2
        ORDER BY i.relname
    """

    _CONSTRAINTS_QUERY = """
        SELECT
            con.conname AS name,
            con.contype::text AS contype,
            pg_get_constraintdef(con.oid) AS definition
        FROM pg_constraint con
        JOIN pg_class t ON t.oid = con.conrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        WHERE n.nspname = $1 AND t.relname = $2
        ORDER BY con.conname
    """

    _FOREIGN_KEYS_QUERY = """
        SELECT
            tc.constraint_name AS name,
            kcu.column_name,
            ccu.table_schema AS ref_schema,
            ccu.table_name AS ref_table,
            ccu.column_name AS ref_column
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON kcu.constraint_name = tc.constraint_name
         AND kcu.table_schema = tc.table_schema
        JOIN information_schema.constraint_column_usage ccu
          ON ccu.constraint_name = tc.constraint_name
         AND ccu.constraint_schema = tc.constraint_schema
        WHERE tc.constraint_type = 'FOREIGN KEY'
          AND tc.table_schema = $1
          AND tc.table_name = $2
        ORDER BY tc.constraint_name, kcu.ordinal_position
    """

    def __init__(self, driver: PoolDriver) -> None:
        self._driver = driver

    async def list_databases(self, pool: Any) -> list[str]:
        rows = await self._records(pool, self._DATABASES_QUERY)
        return [str(row["datname"]) for row in rows]

    async def get_schema_objects(self, pool: Any) -> list[SchemaObject]:
        """Tables and views outside the system schemas."""

        rows = await self._records(pool, self._OBJECTS_QUERY)
        return [
            SchemaObject(
                name=str(row["name"]),
                schema=str(row["schema"]),
                object_type=SchemaObjectType.VIEW if row["table_type"] == "VIEW" else SchemaObjectType.TABLE,
            )
            for row in rows
        ]

    async def get_columns(self, pool: Any, schema: str, table: str) -> list[ColumnInfo]:
        rows = await self._records(pool, self._COLUMNS_QUERY, schema, table)
        return [
            ColumnInfo(
                name=str(row["name"]),
                data_type=str(row["data_type"]),
                is_nullable=bool(row["is_nullable"]),
                is_primary_key=bool(row["is_primary_key"]),
            )
            for row in rows
        ]

    async def get_primary_key_columns(self, pool: Any, schema: str, table: str) -> list[str]:
        """Primary key column names in key order; empty when the table has none."""

        rows = await self._records(pool, self._PRIMARY_KEY_QUERY, schema, table)
        return [str(row["column_name"]) for row in rows]

    async def get_table_structure(self, pool: Any, schema: str, table: str) -> TableStructure:
        columns = await self._records(pool, self._COLUMN_DETAILS_QUERY, schema, table)
        indexes = await self._records(pool, self._INDEXES_QUERY, schema, table)
        constraints = await self._records(pool, self._CONSTRAINTS_QUERY, schema, table)
        foreign_keys = await self._records(pool, self._FOREIGN_KEYS_QUERY, schema, table)
        return TableStructure(
            columns=tuple(
                ColumnDetail(
                    name=str(row["name"]),
                    data_type=str(row["data_type"]),
                    is_nullable=bool(row["is_nullable"]),
                    default_value=row["default_value"],
                )
                for row in columns
            ),
            indexes=tuple(
                IndexInfo(
                    name=str(row["name"]),
                    is_unique=bool(row["is_unique"]),
                    is_primary=bool(row["is_primary"]),
                    definition=str(row["definition"]),
                )
                for row in indexes
            ),
            constraints=tuple(
                ConstraintInfo(
                    name=str(row["name"]),
                    constraint_type=CONSTRAINT_TYPES.get(str(row["contype"]), str(row["contype"])),
                    definition=str(row["definition"]),
                )
                for row in constraints
            ),
            foreign_keys=tuple(
                ForeignKeyInfo(
                    name=str(row["name"]),
                    column_name=str(row["column_name"]),
                    ref_schema=str(row["ref_schema"]),
                    ref_table=str(row["ref_table"]),
                    ref_column=str(row["ref_column"]),
                )
                for row in foreign_keys
            ),
        )

    async def _records(self, pool: Any, sql: str, *args: object) -> list[dict[str, Any]]:
        columns, rows = await self._driver.fetch(pool, sql, *args)
        return [dict(zip(columns, row)) for row in rows]


__all__ = ["CONSTRAINT_TYPES", "SchemaInspector"]
