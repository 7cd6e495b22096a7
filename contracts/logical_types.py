"""Logical column types and their mapping to Arrow.

The tag set is closed: a source field whose Arrow type has no entry here is
rejected with :class:`UnsupportedTypeError` instead of being downcast. Every
supported Arrow type maps to exactly one :class:`LogicalType` and back, which
is what lets a committed table reproduce the loaded schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import pyarrow as pa

from .errors import UnsupportedTypeError


class TypeKind(str, Enum):
    BOOLEAN = "boolean"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    UTF8 = "utf8"
    LARGE_UTF8 = "large_utf8"
    BINARY = "binary"
    LARGE_BINARY = "large_binary"
    DATE = "date"
    TIMESTAMP = "timestamp"
    DECIMAL = "decimal"


# kind -> (bits, signed)
_INTEGER_KINDS: dict[TypeKind, tuple[int, bool]] = {
    TypeKind.INT8: (8, True),
    TypeKind.INT16: (16, True),
    TypeKind.INT32: (32, True),
    TypeKind.INT64: (64, True),
    TypeKind.UINT8: (8, False),
    TypeKind.UINT16: (16, False),
    TypeKind.UINT32: (32, False),
    TypeKind.UINT64: (64, False),
}

_SIMPLE_ARROW: dict[TypeKind, pa.DataType] = {
    TypeKind.BOOLEAN: pa.bool_(),
    TypeKind.INT8: pa.int8(),
    TypeKind.INT16: pa.int16(),
    TypeKind.INT32: pa.int32(),
    TypeKind.INT64: pa.int64(),
    TypeKind.UINT8: pa.uint8(),
    TypeKind.UINT16: pa.uint16(),
    TypeKind.UINT32: pa.uint32(),
    TypeKind.UINT64: pa.uint64(),
    TypeKind.FLOAT32: pa.float32(),
    TypeKind.FLOAT64: pa.float64(),
    TypeKind.UTF8: pa.string(),
    TypeKind.LARGE_UTF8: pa.large_string(),
    TypeKind.BINARY: pa.binary(),
    TypeKind.LARGE_BINARY: pa.large_binary(),
}

TIMESTAMP_UNITS = ("s", "ms", "us", "ns")
DATE_UNITS = ("day", "ms")


@dataclass(frozen=True)
class TimestampValue:
    """Exact timestamp: integer count of ``unit`` since the Unix epoch.

    For tz-aware columns the epoch is UTC; for tz-naive columns it is the
    wall-clock reading interpreted as if it were UTC (Arrow's convention).
    """

    epoch: int
    unit: str
    tz: str | None = None


@dataclass(frozen=True)
class LogicalType:
    """The semantic type bound to a column for the lifetime of a generation."""

    kind: TypeKind
    unit: str | None = None          # timestamp: s|ms|us|ns; date: day|ms
    tz: str | None = None            # timestamp only
    precision: int | None = None     # decimal only
    scale: int | None = None         # decimal only
    bit_width: int | None = None     # decimal only: 128|256

    # -----------------------------
    # Constructors
    # -----------------------------

    @classmethod
    def boolean(cls) -> LogicalType:
        return cls(TypeKind.BOOLEAN)

    @classmethod
    def int32(cls) -> LogicalType:
        return cls(TypeKind.INT32)

    @classmethod
    def int64(cls) -> LogicalType:
        return cls(TypeKind.INT64)

    @classmethod
    def float32(cls) -> LogicalType:
        return cls(TypeKind.FLOAT32)

    @classmethod
    def float64(cls) -> LogicalType:
        return cls(TypeKind.FLOAT64)

    @classmethod
    def utf8(cls) -> LogicalType:
        return cls(TypeKind.UTF8)

    @classmethod
    def binary(cls) -> LogicalType:
        return cls(TypeKind.BINARY)

    @classmethod
    def date(cls, unit: str = "day") -> LogicalType:
        if unit not in DATE_UNITS:
            raise ValueError(f"Invalid date unit: {unit!r}")
        return cls(TypeKind.DATE, unit=unit)

    @classmethod
    def timestamp(cls, unit: str, tz: str | None = None) -> LogicalType:
        if unit not in TIMESTAMP_UNITS:
            raise ValueError(f"Invalid timestamp unit: {unit!r}")
        return cls(TypeKind.TIMESTAMP, unit=unit, tz=tz)

    @classmethod
    def decimal(cls, precision: int, scale: int, bit_width: int | None = None) -> LogicalType:
        if bit_width is None:
            bit_width = 128 if precision <= 38 else 256
        if bit_width not in (128, 256):
            raise ValueError(f"Invalid decimal bit width: {bit_width!r}")
        return cls(TypeKind.DECIMAL, precision=precision, scale=scale, bit_width=bit_width)

    # -----------------------------
    # Properties
    # -----------------------------

    @property
    def is_integer(self) -> bool:
        return self.kind in _INTEGER_KINDS

    @property
    def is_float(self) -> bool:
        return self.kind in (TypeKind.FLOAT32, TypeKind.FLOAT64)

    @property
    def is_string(self) -> bool:
        return self.kind in (TypeKind.UTF8, TypeKind.LARGE_UTF8)

    @property
    def is_binary(self) -> bool:
        return self.kind in (TypeKind.BINARY, TypeKind.LARGE_BINARY)

    def integer_bounds(self) -> tuple[int, int]:
        """Inclusive (min, max) for integer kinds."""
        bits, signed = _INTEGER_KINDS[self.kind]
        if signed:
            return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        return 0, (1 << bits) - 1

    def __str__(self) -> str:
        if self.kind is TypeKind.TIMESTAMP:
            return f"timestamp[{self.unit}, tz={self.tz}]" if self.tz else f"timestamp[{self.unit}]"
        if self.kind is TypeKind.DECIMAL:
            return f"decimal{self.bit_width}({self.precision}, {self.scale})"
        if self.kind is TypeKind.DATE:
            return "date32" if self.unit == "day" else "date64"
        return self.kind.value

    # -----------------------------
    # Arrow mapping
    # -----------------------------

    def to_arrow(self) -> pa.DataType:
        if self.kind in _SIMPLE_ARROW:
            return _SIMPLE_ARROW[self.kind]
        if self.kind is TypeKind.DATE:
            return pa.date32() if self.unit == "day" else pa.date64()
        if self.kind is TypeKind.TIMESTAMP:
            return pa.timestamp(self.unit, tz=self.tz)
        if self.kind is TypeKind.DECIMAL:
            if self.bit_width == 256:
                return pa.decimal256(self.precision, self.scale)
            return pa.decimal128(self.precision, self.scale)
        raise AssertionError(f"unhandled kind {self.kind}")

    # -----------------------------
    # Runtime value check
    # -----------------------------

    def accepts(self, value: Any) -> bool:
        """True when ``value`` is already a valid in-memory value for this type."""
        kind = self.kind
        if kind is TypeKind.BOOLEAN:
            return isinstance(value, bool)
        if self.is_integer:
            if not isinstance(value, int) or isinstance(value, bool):
                return False
            lo, hi = self.integer_bounds()
            return lo <= value <= hi
        if self.is_float:
            return isinstance(value, float)
        if self.is_string:
            return isinstance(value, str)
        if self.is_binary:
            return isinstance(value, bytes)
        if kind is TypeKind.DATE:
            return isinstance(value, date) and not isinstance(value, datetime)
        if kind is TypeKind.TIMESTAMP:
            return isinstance(value, TimestampValue) and value.unit == self.unit and value.tz == self.tz
        if kind is TypeKind.DECIMAL:
            if not isinstance(value, Decimal) or not value.is_finite():
                return False
            parts = value.as_tuple()
            return parts.exponent == -self.scale and len(parts.digits) <= self.precision
        return False


def logical_type_from_arrow(arrow_type: pa.DataType, *, field_name: str = "") -> LogicalType:
    """Map an Arrow type to its LogicalType or raise UnsupportedTypeError."""
    for kind, simple in _SIMPLE_ARROW.items():
        if arrow_type.equals(simple):
            return LogicalType(kind)
    if pa.types.is_date32(arrow_type):
        return LogicalType.date("day")
    if pa.types.is_date64(arrow_type):
        return LogicalType.date("ms")
    if pa.types.is_timestamp(arrow_type):
        return LogicalType.timestamp(arrow_type.unit, arrow_type.tz)
    if pa.types.is_decimal128(arrow_type):
        return LogicalType.decimal(arrow_type.precision, arrow_type.scale, 128)
    if pa.types.is_decimal256(arrow_type):
        return LogicalType.decimal(arrow_type.precision, arrow_type.scale, 256)
    raise UnsupportedTypeError(field_name, str(arrow_type))
