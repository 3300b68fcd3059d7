"""Convert driver-native cell values into JSON-safe canonical values.

Cells are decoded without consulting the catalog: each value is offered to a
fixed, ordered list of probes and the first probe that accepts it decides the
output. The order matters. ``boolean`` runs before the integer probes so a
``bool`` never comes back as ``0``/``1``, and the timestamp probes run before
``date`` because ``datetime`` is a ``date`` subclass. Anything no probe
accepts (``Decimal``, ``bytes``, ``timedelta``, NaN, ...) becomes ``None``.
"""

from __future__ import annotations

import json
import math
import struct
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, Iterable

MISS = object()

_INT_RANGES = {
    16: (-(2**15), 2**15 - 1),
    32: (-(2**31), 2**31 - 1),
    64: (-(2**63), 2**63 - 1),
}


@dataclass(frozen=True, slots=True)
class Probe:
    """A named extractor returning the canonical value or ``MISS``."""

    name: str
    extract: Callable[[object], object]


def _text(value: object) -> object:
    return value if isinstance(value, str) else MISS


def _boolean(value: object) -> object:
    return value if isinstance(value, bool) else MISS


def _integer(bits: int) -> Callable[[object], object]:
    low, high = _INT_RANGES[bits]

    def _extract(value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool) and low <= value <= high:
            return value
        return MISS

    return _extract


def _float32(value: object) -> object:
    if not isinstance(value, float) or not math.isfinite(value):
        return MISS
    try:
        narrowed = struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return MISS
    return value if narrowed == value else MISS


def _float64(value: object) -> object:
    if isinstance(value, float) and math.isfinite(value):
        return value
    return MISS


def _uuid(value: object) -> object:
    return str(value) if isinstance(value, uuid.UUID) else MISS


def _timestamptz(value: object) -> object:
    if isinstance(value, datetime) and value.utcoffset() is not None:
        return value.isoformat()
    return MISS


def _timestamp(value: object) -> object:
    if isinstance(value, datetime) and value.utcoffset() is None:
        return str(value)
    return MISS


def _date(value: object) -> object:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return MISS


def _time(value: object) -> object:
    return value.isoformat() if isinstance(value, time) else MISS


def _json(value: object) -> object:
    if not isinstance(value, (dict, list)):
        return MISS
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        return MISS
    return value


PROBES: tuple[Probe, ...] = (
    Probe("text", _text),
    Probe("boolean", _boolean),
    Probe("int16", _integer(16)),
    Probe("int32", _integer(32)),
    Probe("int64", _integer(64)),
    Probe("float32", _float32),
    Probe("float64", _float64),
    Probe("uuid", _uuid),
    Probe("timestamptz", _timestamptz),
    Probe("timestamp", _timestamp),
    Probe("date", _date),
    Probe("time", _time),
    Probe("json", _json),
)


def coerce(value: object) -> object:
    """Return the canonical value for a single cell."""

    if value is None:
        return None
    for probe in PROBES:
        result = probe.extract(value)
        if result is not MISS:
            return result
    return None


def coerce_row(row: Iterable[object]) -> tuple[object, ...]:
    return tuple(coerce(value) for value in row)


__all__ = ["MISS", "PROBES", "Probe", "coerce", "coerce_row"]
