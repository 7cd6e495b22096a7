"""Unit tests for the logical type set and its Arrow mapping."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pyarrow as pa
import pytest

from contracts.errors import UnsupportedTypeError
from contracts.logical_types import LogicalType, TimestampValue, TypeKind, logical_type_from_arrow


@pytest.mark.parametrize(
    "arrow_type",
    [
        pa.bool_(),
        pa.int8(),
        pa.int16(),
        pa.int32(),
        pa.int64(),
        pa.uint8(),
        pa.uint16(),
        pa.uint32(),
        pa.uint64(),
        pa.float32(),
        pa.float64(),
        pa.string(),
        pa.large_string(),
        pa.binary(),
        pa.large_binary(),
        pa.date32(),
        pa.date64(),
        pa.timestamp("s"),
        pa.timestamp("ns", tz="Europe/Paris"),
        pa.decimal128(12, 3),
        pa.decimal256(50, 10),
    ],
)
def test_arrow_mapping_is_bijective(arrow_type: pa.DataType) -> None:
    """Every supported Arrow type maps to a logical type and back unchanged."""
    logical = logical_type_from_arrow(arrow_type)
    assert logical.to_arrow().equals(arrow_type)


@pytest.mark.parametrize(
    "arrow_type",
    [pa.list_(pa.int32()), pa.struct([("a", pa.int8())]), pa.dictionary(pa.int8(), pa.string()), pa.time32("s")],
)
def test_unsupported_arrow_types_are_rejected(arrow_type: pa.DataType) -> None:
    with pytest.raises(UnsupportedTypeError) as excinfo:
        logical_type_from_arrow(arrow_type, field_name="tags")
    assert excinfo.value.field_name == "tags"


def test_decimal_bit_width_defaults_from_precision() -> None:
    assert LogicalType.decimal(38, 2).bit_width == 128
    assert LogicalType.decimal(39, 2).bit_width == 256


def test_invalid_units_raise_value_error() -> None:
    with pytest.raises(ValueError):
        LogicalType.timestamp("minutes")
    with pytest.raises(ValueError):
        LogicalType.date("week")


def test_integer_bounds() -> None:
    assert LogicalType(TypeKind.INT8).integer_bounds() == (-128, 127)
    assert LogicalType(TypeKind.UINT16).integer_bounds() == (0, 65535)
    assert LogicalType.int64().integer_bounds() == (-(2**63), 2**63 - 1)


def test_accepts_rejects_bool_for_integer_columns() -> None:
    assert LogicalType.int32().accepts(5)
    assert not LogicalType.int32().accepts(True)
    assert not LogicalType(TypeKind.UINT8).accepts(256)
    assert LogicalType.boolean().accepts(False)
    assert not LogicalType.boolean().accepts(0)


def test_accepts_distinguishes_date_from_datetime() -> None:
    assert LogicalType.date().accepts(date(2024, 1, 1))
    assert not LogicalType.date().accepts(datetime(2024, 1, 1))


def test_accepts_timestamp_checks_unit_and_timezone() -> None:
    col = LogicalType.timestamp("ms", "UTC")
    assert col.accepts(TimestampValue(epoch=5, unit="ms", tz="UTC"))
    assert not col.accepts(TimestampValue(epoch=5, unit="us", tz="UTC"))
    assert not col.accepts(TimestampValue(epoch=5, unit="ms", tz=None))


def test_accepts_decimal_requires_exact_scale_and_precision() -> None:
    col = LogicalType.decimal(5, 2)
    assert col.accepts(Decimal("123.45"))
    assert not col.accepts(Decimal("123.4"))
    assert not col.accepts(Decimal("1234.56"))
    assert not col.accepts(Decimal("NaN"))


def test_string_rendering() -> None:
    assert str(LogicalType.timestamp("us", "UTC")) == "timestamp[us, tz=UTC]"
    assert str(LogicalType.decimal(10, 2)) == "decimal128(10, 2)"
    assert str(LogicalType.date("ms")) == "date64"
    assert str(LogicalType.utf8()) == "utf8"
