"""Shared dataclasses used across the connection, schema, and query modules."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum


def new_connection_id() -> str:
    """Return a fresh opaque connection id."""

    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Identity and routing info for one server; the password lives in the credential store."""

    id: str
    name: str
    host: str
    port: int
    user: str
    database: str
    ssl: bool = False

    @classmethod
    def create(
        cls,
        *,
        name: str,
        host: str,
        port: int,
        user: str,
        database: str,
        ssl: bool = False,
    ) -> ConnectionConfig:
        """Build a config with a newly generated id."""

        return cls(
            id=new_connection_id(),
            name=name,
            host=host,
            port=port,
            user=user,
            database=database,
            ssl=ssl,
        )


class SchemaObjectType(str, Enum):
    """Kinds of objects listed in the schema tree."""

    TABLE = "table"
    VIEW = "view"
    FUNCTION = "function"


@dataclass(frozen=True, slots=True)
class SchemaObject:
    name: str
    schema: str
    object_type: SchemaObjectType


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Column summary used by the table browser."""

    name: str
    data_type: str
    is_nullable: bool
    is_primary_key: bool


@dataclass(frozen=True, slots=True)
class ColumnDetail:
    """Column entry of the structure view."""

    name: str
    data_type: str
    is_nullable: bool
    default_value: str | None = None


@dataclass(frozen=True, slots=True)
class IndexInfo:
    name: str
    is_unique: bool
    is_primary: bool
    definition: str


@dataclass(frozen=True, slots=True)
class ConstraintInfo:
    name: str
    constraint_type: str
    definition: str


@dataclass(frozen=True, slots=True)
class ForeignKeyInfo:
    name: str
    column_name: str
    ref_schema: str
    ref_table: str
    ref_column: str


@dataclass(frozen=True, slots=True)
class TableStructure:
    """Full structure snapshot for a single table."""

    columns: tuple[ColumnDetail, ...]
    indexes: tuple[IndexInfo, ...]
    constraints: tuple[ConstraintInfo, ...]
    foreign_keys: tuple[ForeignKeyInfo, ...]


__all__ = [
    "ColumnDetail",
    "ColumnInfo",
    "ConnectionConfig",
    "ConstraintInfo",
    "ForeignKeyInfo",
    "IndexInfo",
    "SchemaObject",
    "SchemaObjectType",
    "TableStructure",
    "new_connection_id",
]
