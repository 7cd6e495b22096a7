"""Type-directed coercion between edited text and storage values.

The storage boundary is intentionally strict: the target type always comes
from the schema catalog, never from the value. Anything that cannot be
represented exactly in the column type raises :class:`TypeCoercionError`
rather than being rounded, truncated or silently retyped.

:func:`format_value` is the inverse: it renders a typed value in the canonical
text form that :func:`coerce_text` accepts back.
"""

# contracts/storage_cast.py
from __future__ import annotations

import re
import struct
from datetime import UTC, date, datetime, timedelta
from decimal import Context, Decimal, InvalidOperation
from typing import Any

from .cells import Cell, NullCell, RawEdit, TypedCell
from .errors import NullabilityViolationError, TypeCoercionError
from .logical_types import LogicalType, TimestampValue, TypeKind

_TRUE_TEXT = frozenset({"true", "1", "yes", "y"})
_FALSE_TEXT = frozenset({"false", "0", "no", "n"})

_NON_FINITE_RE = re.compile(r"^[+-]?(nan|inf|infinity)$", re.IGNORECASE)

_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1

# decimal256 holds up to 76 digits; the default context stops at 28
_DECIMAL_CTX = Context(prec=100)

_INT_RE = re.compile(r"^[+-]?\d+(_\d+)*$")

# YYYY-MM-DD[T ]HH:MM[:SS[.fffffffff]][Z|+HH:MM|-HH:MM]
_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,9}))?)?)?"
    r"(?P<offset>Z|[+-]\d{2}:?\d{2})?$"
)

_UNIT_NANOS = {"s": 1_000_000_000, "ms": 1_000_000, "us": 1_000, "ns": 1}
_EPOCH_NAIVE = datetime(1970, 1, 1)
_EPOCH_UTC = datetime(1970, 1, 1, tzinfo=UTC)


def _fail(value: Any, reason: str) -> TypeCoercionError:
    # Column/row are bound by the caller via CellError.at()
    return TypeCoercionError(column="", row=None, value=value, reason=reason)


# -----------------------------
# Per-kind parsers
# -----------------------------


def _parse_bool(text: str) -> bool:
    txt = text.strip().lower()
    if txt in _TRUE_TEXT:
        return True
    if txt in _FALSE_TEXT:
        return False
    raise _fail(text, "expected one of true/false, 1/0, yes/no, y/n")


def _parse_int(text: str, logical_type: LogicalType) -> int:
    txt = text.strip()
    if not _INT_RE.match(txt):
        raise _fail(text, f"not an integer literal for {logical_type}")
    value = int(txt)
    lo, hi = logical_type.integer_bounds()
    if not lo <= value <= hi:
        raise _fail(text, f"out of range for {logical_type} [{lo}, {hi}]")
    return value


def _parse_float(text: str, logical_type: LogicalType) -> float:
    txt = text.strip()
    try:
        value = float(txt)
    except ValueError as exc:
        raise _fail(text, f"not a number for {logical_type}") from exc
    if _NON_FINITE_RE.match(txt):
        return value
    if value in (float("inf"), float("-inf")):
        raise _fail(text, f"out of range for {logical_type}")
    if logical_type.kind is TypeKind.FLOAT32:
        # the bound is whatever rounds to a finite float32, FLT_MAX included
        try:
            struct.pack("<f", value)
        except OverflowError as exc:
            raise _fail(text, f"out of range for {logical_type}") from exc
    return value


def _parse_decimal(text: str, logical_type: LogicalType) -> Decimal:
    try:
        dec = Decimal(text.strip())
    except InvalidOperation as exc:
        raise _fail(text, f"not a decimal number for {logical_type}") from exc
    return _fit_decimal(dec, logical_type, original=text)


def _fit_decimal(dec: Decimal, logical_type: LogicalType, *, original: Any) -> Decimal:
    if not dec.is_finite():
        raise _fail(original, "NaN/Infinity not representable as decimal")
    scale = int(logical_type.scale or 0)
    try:
        quantized = dec.quantize(Decimal(1).scaleb(-scale), context=_DECIMAL_CTX)
    except InvalidOperation as exc:
        raise _fail(original, f"does not fit {logical_type}") from exc
    if quantized != dec:
        raise _fail(original, f"more than {scale} fractional digits for {logical_type}")
    if len(quantized.as_tuple().digits) > int(logical_type.precision or 0):
        raise _fail(original, f"exceeds precision of {logical_type}")
    return quantized


def _parse_date(text: str) -> date:
    txt = text.strip()
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", txt):
        raise _fail(text, "expected date as YYYY-MM-DD")
    try:
        return date.fromisoformat(txt)
    except ValueError as exc:
        raise _fail(text, f"invalid date: {exc}") from exc


def _parse_offset(raw: str) -> timedelta:
    if raw == "Z":
        return timedelta(0)
    sign = -1 if raw[0] == "-" else 1
    digits = raw[1:].replace(":", "")
    return sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))


def _parse_timestamp(text: str, logical_type: LogicalType) -> TimestampValue:
    txt = text.strip()
    m = _TIMESTAMP_RE.match(txt)
    if not m:
        raise _fail(text, "expected ISO 8601 timestamp YYYY-MM-DDTHH:MM:SS[.fffffffff][Z|+HH:MM]")

    try:
        base = datetime.fromisoformat(m.group("date"))
        base = base.replace(
            hour=int(m.group("hour") or 0),
            minute=int(m.group("minute") or 0),
            second=int(m.group("second") or 0),
        )
    except ValueError as exc:
        raise _fail(text, f"invalid timestamp: {exc}") from exc

    fraction = m.group("fraction") or ""
    fraction_nanos = int(fraction.ljust(9, "0")) if fraction else 0

    offset = m.group("offset")
    if offset is not None:
        if logical_type.tz is None:
            raise _fail(text, "timezone offset not allowed in a timezone-naive column")
        base = base - _parse_offset(offset)

    # tz-aware columns store UTC; naive input is already read as UTC
    whole_seconds = (base - _EPOCH_NAIVE) // timedelta(seconds=1)
    total_nanos = whole_seconds * 1_000_000_000 + fraction_nanos

    unit = str(logical_type.unit)
    step = _UNIT_NANOS[unit]
    if total_nanos % step:
        raise _fail(text, f"precision finer than timestamp unit {unit!r}")
    epoch = total_nanos // step
    if not _INT64_MIN <= epoch <= _INT64_MAX:
        raise _fail(text, f"out of range for timestamp[{unit}]")
    return TimestampValue(epoch=epoch, unit=unit, tz=logical_type.tz)


def _parse_binary(text: str) -> bytes:
    txt = "".join(text.split())
    if txt[:2].lower() == "0x":
        txt = txt[2:]
    try:
        return bytes.fromhex(txt)
    except ValueError as exc:
        raise _fail(text, "expected hexadecimal bytes") from exc


# -----------------------------
# Public API
# -----------------------------


def coerce_text(text: str, logical_type: LogicalType) -> Any:
    """
    Convert edited text to a value of ``logical_type``.
    Returns ``None`` for empty input on non-string types.
    """
    if logical_type.is_string:
        return text
    if text.strip() == "":
        return None

    kind = logical_type.kind
    if kind is TypeKind.BOOLEAN:
        return _parse_bool(text)
    if logical_type.is_integer:
        return _parse_int(text, logical_type)
    if logical_type.is_float:
        return _parse_float(text, logical_type)
    if kind is TypeKind.DECIMAL:
        return _parse_decimal(text, logical_type)
    if kind is TypeKind.DATE:
        return _parse_date(text)
    if kind is TypeKind.TIMESTAMP:
        return _parse_timestamp(text, logical_type)
    if logical_type.is_binary:
        return _parse_binary(text)
    raise AssertionError(f"unhandled kind {kind}")


def coerce_python_value(value: Any, logical_type: LogicalType) -> Any:
    """Accept a non-text Python value if it is, or converts exactly to, the column type."""
    if logical_type.accepts(value):
        return value
    if logical_type.kind is TypeKind.DECIMAL and isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        return _fit_decimal(Decimal(value), logical_type, original=value)
    if logical_type.is_float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if logical_type.kind is TypeKind.TIMESTAMP and isinstance(value, datetime):
        return coerce_text(value.isoformat(), logical_type)
    raise _fail(value, f"{type(value).__name__} is not valid for {logical_type}")


def resolve_cell(cell: Cell, logical_type: LogicalType, *, nullable: bool, column: str, row: int) -> Any:
    """
    Resolve one cell to the Python value that goes into the columnar vector.
    Raises NullabilityViolationError / TypeCoercionError bound to (column, row).
    """
    if isinstance(cell, NullCell):
        value = None
    elif isinstance(cell, RawEdit):
        try:
            value = coerce_text(cell.text, logical_type)
        except TypeCoercionError as exc:
            raise exc.at(column=column, row=row) from None
    elif isinstance(cell, TypedCell):
        if not logical_type.accepts(cell.value):
            raise TypeCoercionError(
                column=column,
                row=row,
                value=cell.value,
                reason=f"typed value does not match {logical_type}",
            )
        value = cell.value
    else:
        raise TypeError(f"Not a cell: {cell!r}")

    if value is None and not nullable:
        original = cell.text if isinstance(cell, RawEdit) else None
        raise NullabilityViolationError(
            column=column, row=row, value=original, reason="column is not nullable"
        )
    return value


# -----------------------------
# Canonical text rendering
# -----------------------------


def format_timestamp(value: TimestampValue) -> str:
    step = _UNIT_NANOS[value.unit]
    total_nanos = value.epoch * step
    seconds, nanos = divmod(total_nanos, 1_000_000_000)
    dt = _EPOCH_NAIVE + timedelta(seconds=seconds)
    text = dt.isoformat(timespec="seconds")
    if value.unit == "ms":
        text += f".{nanos // 1_000_000:03d}"
    elif value.unit == "us":
        text += f".{nanos // 1_000:06d}"
    elif value.unit == "ns":
        text += f".{nanos:09d}"
    if value.tz is not None:
        text += "Z"
    return text


def timestamp_to_datetime(value: TimestampValue) -> datetime:
    """Best-effort datetime (microsecond precision, UTC-aware for tz columns)."""
    micros = (value.epoch * _UNIT_NANOS[value.unit]) // 1_000
    if value.tz is not None:
        return _EPOCH_UTC + timedelta(microseconds=micros)
    return _EPOCH_NAIVE + timedelta(microseconds=micros)


def format_value(value: Any, logical_type: LogicalType) -> str:
    """Canonical text for a typed value; ``None`` renders as ``""``."""
    if value is None:
        return ""
    kind = logical_type.kind
    if kind is TypeKind.BOOLEAN:
        return "true" if value else "false"
    if logical_type.is_float:
        return repr(float(value))
    if kind is TypeKind.DECIMAL:
        return format(value, "f")
    if kind is TypeKind.DATE:
        return value.isoformat()
    if kind is TypeKind.TIMESTAMP:
        return format_timestamp(value)
    if logical_type.is_binary:
        return bytes(value).hex()
    return str(value)


def cell_text(cell: Cell, logical_type: LogicalType) -> str:
    """Display text for any cell variant."""
    if isinstance(cell, RawEdit):
        return cell.text
    if isinstance(cell, TypedCell):
        return format_value(cell.value, logical_type)
    return ""
