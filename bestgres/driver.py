"""Driver adapter: asyncpg pools behind a small async protocol."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Protocol, Sequence, runtime_checkable
from urllib.parse import quote

import asyncpg

from .errors import ConnectionFailedError, DatabaseError

LOG = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 5
DEFAULT_TIMEOUT = 5.0

Row = tuple[object, ...]


@runtime_checkable
class PoolDriver(Protocol):
    """Protocol implemented by driver adapters."""

    async def connect(self, dsn: str, *, eager: bool, timeout: float) -> Any:
        """Create a pool; eager pools open a connection before returning."""

    async def probe(self, pool: Any) -> None:
        """Run a liveness query, raising ``ConnectionFailedError`` on failure."""

    async def fetch(self, pool: Any, sql: str, *args: object) -> tuple[tuple[str, ...], list[Row]]:
        """Run ``sql`` and return column names plus rows of native values."""

    async def execute(self, pool: Any, sql: str, *args: object) -> int:
        """Run ``sql`` and return the affected row count."""

    async def close(self, pool: Any) -> None:
        """Release every connection held by the pool."""


def build_connection_string(
    host: str,
    port: int,
    user: str,
    password: str,
    database: str,
    ssl: bool,
) -> str:
    """Return a ``postgres://`` URL for the given server and database."""

    ssl_mode = "require" if ssl else "disable"
    return (
        f"postgres://{quote(user, safe='')}:{quote(password, safe='')}"
        f"@{host}:{port}/{quote(database, safe='')}?sslmode={ssl_mode}"
    )


_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InvalidAuthorizationSpecificationError,
    asyncpg.exceptions.InvalidCatalogNameError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
)


class AsyncpgDriver:
    """Pool driver backed by ``asyncpg``."""

    _PROBE_QUERY = "SELECT 1"

    def __init__(self, *, max_size: int = DEFAULT_MAX_SIZE, acquire_timeout: float = DEFAULT_TIMEOUT) -> None:
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout

    async def connect(self, dsn: str, *, eager: bool, timeout: float) -> asyncpg.Pool:
        try:
            pool = await asyncpg.create_pool(
                dsn,
                min_size=1 if eager else 0,
                max_size=self._max_size,
                timeout=timeout,
                init=_init_connection,
            )
        except Exception as exc:
            raise ConnectionFailedError(str(exc) or exc.__class__.__name__) from exc
        LOG.debug("Created pool", extra={"eager": eager, "max_size": self._max_size})
        return pool

    async def probe(self, pool: asyncpg.Pool) -> None:
        try:
            async with pool.acquire(timeout=self._acquire_timeout) as conn:
                await conn.execute(self._PROBE_QUERY)
        except Exception as exc:
            raise ConnectionFailedError(str(exc) or exc.__class__.__name__) from exc

    async def fetch(self, pool: asyncpg.Pool, sql: str, *args: object) -> tuple[tuple[str, ...], list[Row]]:
        try:
            async with pool.acquire(timeout=self._acquire_timeout) as conn:
                if args:
                    statement = await conn.prepare(sql)
                    records = await statement.fetch(*adapt_arguments(statement.get_parameters(), args))
                else:
                    records = await conn.fetch(sql)
        except (ConnectionFailedError, DatabaseError):
            raise
        except Exception as exc:
            raise _translate(exc) from exc
        return records_to_rows(records)

    async def execute(self, pool: asyncpg.Pool, sql: str, *args: object) -> int:
        try:
            async with pool.acquire(timeout=self._acquire_timeout) as conn:
                statement = await conn.prepare(sql)
                await statement.fetch(*adapt_arguments(statement.get_parameters(), args))
                status = statement.get_statusmsg()
        except (ConnectionFailedError, DatabaseError):
            raise
        except Exception as exc:
            raise _translate(exc) from exc
        return affected_rows(status)

    async def close(self, pool: asyncpg.Pool) -> None:
        await pool.close()


def records_to_rows(records: Iterable[Any]) -> tuple[tuple[str, ...], list[Row]]:
    """Split records into column names (taken from the first record) and value tuples."""

    columns: tuple[str, ...] = ()
    rows: list[Row] = []
    for record in records:
        if not columns:
            columns = tuple(str(key) for key in record.keys())
        rows.append(tuple(record.values()))
    return columns, rows


def affected_rows(status: str | None) -> int:
    """Parse the row count out of a command tag such as ``UPDATE 3``."""

    tokens = (status or "").split()
    if tokens and tokens[-1].isdigit():
        return int(tokens[-1])
    raise DatabaseError(f"Cannot determine affected rows from status '{status}'")


def _translate(exc: BaseException) -> ConnectionFailedError | DatabaseError:
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, _CONNECTION_ERRORS):
        return ConnectionFailedError(message)
    return DatabaseError(message)


def _encode_json(value: object) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


async def _init_connection(conn: asyncpg.Connection) -> None:
    for typename in ("json", "jsonb"):
        await conn.set_type_codec(
            typename,
            schema="pg_catalog",
            encoder=_encode_json,
            decoder=json.loads,
        )


# Bound arguments arrive in their JSON-ish form (mostly text from the UI);
# asyncpg wants Python values matching the parameter types the server inferred.

_TEXT_TYPES = frozenset({"text", "varchar", "bpchar", "char", "name", "citext", "unknown"})
_TRUE_WORDS = frozenset({"true", "t", "yes", "y", "on", "1"})
_FALSE_WORDS = frozenset({"false", "f", "no", "n", "off", "0"})


def _as_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _as_int(value: object) -> object:
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not integral")
        return int(value)
    return value


def _as_float(value: object) -> object:
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return float(value)
    return value


def _as_decimal(value: object) -> object:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return Decimal(str(value).strip())
    return value


def _as_bool(value: object) -> object:
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(f"{value!r} is not a boolean")
    if isinstance(value, int):
        return bool(value)
    return value


def _as_uuid(value: object) -> object:
    if isinstance(value, str):
        return uuid.UUID(value.strip())
    return value


def _as_date(value: object) -> object:
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    return value


def _as_time(value: object) -> object:
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    return value


def _as_timestamp(value: object) -> object:
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip())
    return value


def _as_timestamptz(value: object) -> object:
    parsed = _as_timestamp(value)
    if isinstance(parsed, datetime) and parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


_CONVERTERS: dict[str, Callable[[object], object]] = {
    "int2": _as_int,
    "int4": _as_int,
    "int8": _as_int,
    "oid": _as_int,
    "float4": _as_float,
    "float8": _as_float,
    "numeric": _as_decimal,
    "bool": _as_bool,
    "uuid": _as_uuid,
    "date": _as_date,
    "time": _as_time,
    "timestamp": _as_timestamp,
    "timestamptz": _as_timestamptz,
}


def adapt_argument(value: object, type_name: str) -> object:
    """Convert one bound value to what asyncpg expects for ``type_name``."""

    if value is None:
        return None
    if type_name in _TEXT_TYPES:
        return _as_text(value)
    converter = _CONVERTERS.get(type_name)
    if converter is None:
        return value
    return converter(value)


def adapt_arguments(parameters: Sequence[Any], args: Sequence[object]) -> list[object]:
    """Adapt ``args`` positionally against prepared-statement parameter types."""

    adapted: list[object] = []
    for index, value in enumerate(args):
        type_name = parameters[index].name if index < len(parameters) else "unknown"
        try:
            adapted.append(adapt_argument(value, type_name))
        except (ValueError, InvalidOperation) as exc:
            raise DatabaseError(
                f"Invalid value for parameter ${index + 1} ({type_name}): {value!r}"
            ) from exc
    return adapted


__all__ = [
    "AsyncpgDriver",
    "DEFAULT_MAX_SIZE",
    "DEFAULT_TIMEOUT",
    "PoolDriver",
    "adapt_argument",
    "adapt_arguments",
    "affected_rows",
    "build_connection_string",
    "records_to_rows",
]
