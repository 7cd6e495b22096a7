"""Property-based tests for lossless round trips and edit-buffer behavior."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pyarrow as pa
import pytest

pytest.importorskip("hypothesis")
from hypothesis import given, settings  # type: ignore  # noqa: E402
from hypothesis import strategies as st

from contracts.logical_types import LogicalType, TimestampValue, TypeKind
from contracts.storage_cast import coerce_text, format_value
from pipeline.codec_parquet import ArrowIpcCodec, ParquetCodec
from pipeline.commit_table import commit_snapshot
from pipeline.edit_buffer import EditBuffer
from pipeline.load_table import load_table

# (arrow type, value strategy); timestamp values are raw int64 epochs
_I64 = st.integers(min_value=-(2**63), max_value=2**63 - 1)
_DATES = st.dates(min_value=date(1, 1, 1), max_value=date(9999, 12, 31))
_COLUMN_KINDS = [
    (pa.bool_(), st.booleans()),
    (pa.int8(), st.integers(-128, 127)),
    (pa.int32(), st.integers(-(2**31), 2**31 - 1)),
    (pa.int64(), _I64),
    (pa.uint64(), st.integers(0, 2**64 - 1)),
    (pa.float64(), st.floats(allow_nan=False)),
    (pa.float32(), st.floats(width=32, allow_nan=False)),
    (pa.string(), st.text()),
    (pa.large_string(), st.text(max_size=5)),
    (pa.binary(), st.binary()),
    (pa.date32(), _DATES),
    (pa.timestamp("ms"), _I64),
    (pa.timestamp("us", tz="UTC"), _I64),
    (pa.timestamp("ns", tz="America/New_York"), _I64),
    (pa.decimal128(12, 3), st.decimals(min_value=-(10**9) + 1, max_value=10**9 - 1, places=3, allow_nan=False)),
]


def _array(arrow_type: pa.DataType, values: list) -> pa.Array:
    if pa.types.is_timestamp(arrow_type):
        return pa.array(values, type=pa.int64()).cast(arrow_type)
    return pa.array(values, type=arrow_type)


@st.composite
def _tables(draw: st.DrawFn) -> pa.Table:
    picked = draw(st.lists(st.sampled_from(range(len(_COLUMN_KINDS))), min_size=1, max_size=5))
    num_rows = draw(st.integers(min_value=0, max_value=8))
    fields, arrays = [], []
    for pos, idx in enumerate(picked):
        arrow_type, values = _COLUMN_KINDS[idx]
        nullable = draw(st.booleans())
        element = values if not nullable else st.none() | values
        column = draw(st.lists(element, min_size=num_rows, max_size=num_rows))
        fields.append(pa.field(f"c{pos}", arrow_type, nullable=nullable))
        arrays.append(_array(arrow_type, column))
    return pa.Table.from_arrays(arrays, schema=pa.schema(fields))


@settings(max_examples=150, deadline=None, database=None)
@given(table=_tables())
def test_unedited_commit_is_identity(table: pa.Table) -> None:
    loaded = load_table(table)
    committed = commit_snapshot(EditBuffer(loaded.catalog, loaded.rows).snapshot()).table
    assert committed.schema.equals(table.schema, check_metadata=True)
    assert committed.equals(table)


@settings(max_examples=60, deadline=None, database=None)
@given(table=_tables())
def test_parquet_decode_commit_encode_is_lossless(table: pa.Table) -> None:
    codec = ParquetCodec()
    decoded = codec.decode(codec.encode(table))
    loaded = load_table(decoded)
    committed = commit_snapshot(EditBuffer(loaded.catalog, loaded.rows).snapshot(), workers=3).table
    again = codec.decode(codec.encode(committed))
    assert again.schema.equals(decoded.schema)
    assert again.equals(decoded)


@settings(max_examples=60, deadline=None, database=None)
@given(table=_tables())
def test_arrow_ipc_round_trip_is_lossless(table: pa.Table) -> None:
    codec = ArrowIpcCodec()
    loaded = load_table(codec.decode(codec.encode(table)))
    committed = commit_snapshot(EditBuffer(loaded.catalog, loaded.rows).snapshot()).table
    assert committed.equals(table)


# -----------------------------
# Canonical text
# -----------------------------

_TEXT_CASES = st.one_of(
    st.tuples(st.just(LogicalType.int64()), _I64),
    st.tuples(st.just(LogicalType(TypeKind.UINT32)), st.integers(0, 2**32 - 1)),
    st.tuples(st.just(LogicalType.float64()), st.floats()),
    st.tuples(st.just(LogicalType.boolean()), st.booleans()),
    st.tuples(st.just(LogicalType.date()), _DATES),
    st.tuples(st.just(LogicalType.binary()), st.binary(min_size=1)),
    st.tuples(
        st.just(LogicalType.decimal(20, 4)),
        st.decimals(min_value=-(10**15) + 1, max_value=10**15 - 1, places=4, allow_nan=False),
    ),
    st.tuples(
        st.just(LogicalType.timestamp("ns", "UTC")),
        st.integers(-(2**62), 2**62).map(lambda e: TimestampValue(epoch=e, unit="ns", tz="UTC")),
    ),
    st.tuples(
        st.just(LogicalType.timestamp("s")),
        st.integers(-62_135_596_800, 253_402_300_799).map(lambda e: TimestampValue(epoch=e, unit="s")),
    ),
)


@settings(max_examples=300, deadline=None, database=None)
@given(case=_TEXT_CASES)
def test_canonical_text_parses_back_to_the_same_value(case: tuple) -> None:
    logical_type, value = case
    parsed = coerce_text(format_value(value, logical_type), logical_type)
    if isinstance(value, float) and value != value:
        assert parsed != parsed
    elif isinstance(value, Decimal):
        assert parsed == value and parsed.as_tuple().exponent == -4
    else:
        assert parsed == value


# -----------------------------
# Edit buffer
# -----------------------------


def _letters(n: int) -> EditBuffer:
    loaded = load_table(pa.table({"v": pa.array([str(i) for i in range(n)], type=pa.string())}))
    return EditBuffer(loaded.catalog, loaded.rows)


@settings(max_examples=200, deadline=None, database=None)
@given(n=st.integers(0, 20), indices=st.sets(st.integers(-3, 25)))
def test_delete_rows_matches_list_model(n: int, indices: set[int]) -> None:
    buf = _letters(n)
    expected = [str(i) for i in range(n) if i not in indices]

    assert buf.delete_rows(indices) == len(expected)
    assert [buf.get_cell(i, "v").value for i in range(buf.row_count)] == expected


@settings(max_examples=200, deadline=None, database=None)
@given(n=st.integers(1, 20), data=st.data())
def test_selection_tracks_rows_through_deletions(n: int, data: st.DataObject) -> None:
    buf = _letters(n)
    selected = data.draw(st.sets(st.integers(0, n - 1)))
    deleted = data.draw(st.sets(st.integers(0, n - 1)))
    buf.select_rows(selected)
    buf.delete_rows(deleted)

    still_selected = sorted(str(i) for i in selected - deleted)
    assert sorted(buf.get_cell(i, "v").value for i in buf.selected_indices()) == still_selected
