"""Unit tests for the commit stage (snapshot -> Arrow table)."""

from __future__ import annotations

from decimal import Decimal

import pyarrow as pa
import pytest

from contracts.cells import NULL, RawEdit, TypedCell
from contracts.errors import NullabilityViolationError, SchemaMismatchError, TypeCoercionError
from contracts.logical_types import LogicalType
from contracts.schema_catalog import Column, SchemaCatalog
from pipeline.commit_table import commit_snapshot
from pipeline.edit_buffer import TableSnapshot
from tests.factories import make_buffer, make_people_table, make_table, people_schema


def test_unedited_commit_reproduces_the_source_table() -> None:
    source = make_people_table()
    result = commit_snapshot(make_buffer(source).snapshot())

    assert result.table.schema.equals(source.schema, check_metadata=True)
    assert result.table.equals(source)
    assert result.stats.rows == 3
    assert result.stats.coerced_cells == 0


def test_edited_int_column_stays_int32() -> None:
    buf = make_buffer(make_table({"qty": (pa.int32(), [1, 2, 3])}))
    buf.set_cell(0, "qty", "12")

    table = commit_snapshot(buf.snapshot()).table

    assert table.schema.field("qty").type == pa.int32()
    assert table.column("qty").to_pylist() == [12, 2, 3]


def test_fractional_edit_in_int_column_fails_without_touching_the_buffer() -> None:
    buf = make_buffer(make_table({"qty": (pa.int32(), [1, 2, 3])}))
    buf.set_cell(1, "qty", "12.5")
    before = buf.snapshot()

    with pytest.raises(TypeCoercionError) as excinfo:
        commit_snapshot(buf.snapshot())

    assert (excinfo.value.column, excinfo.value.row, excinfo.value.value) == ("qty", 1, "12.5")
    assert buf.snapshot() == before
    assert buf.get_cell(1, "qty") == RawEdit("12.5")


@pytest.mark.parametrize("arrow_type", [pa.float32(), pa.float64()])
def test_overflowing_float_edit_is_a_coercion_error(arrow_type: pa.DataType) -> None:
    buf = make_buffer(make_table({"c": (arrow_type, [1.0])}))
    buf.set_cell(0, "c", "1e400")

    with pytest.raises(TypeCoercionError) as excinfo:
        commit_snapshot(buf.snapshot())

    assert (excinfo.value.column, excinfo.value.row) == ("c", 0)


def test_timestamp_edit_beyond_unit_range_is_a_coercion_error() -> None:
    buf = make_buffer(make_table({"c": (pa.timestamp("ns"), [None])}))
    buf.set_cell(0, "c", "9999-12-31T00:00:00")

    with pytest.raises(TypeCoercionError) as excinfo:
        commit_snapshot(buf.snapshot())

    assert (excinfo.value.column, excinfo.value.row) == ("c", 0)
    assert "timestamp[ns]" in excinfo.value.reason


def test_null_in_non_nullable_column_is_rejected() -> None:
    buf = make_buffer()
    buf.set_cell(2, "id", None)

    with pytest.raises(NullabilityViolationError) as excinfo:
        commit_snapshot(buf.snapshot())

    assert excinfo.value.column == "id"
    assert excinfo.value.row == 2
    assert buf.get_cell(2, "id") is NULL


def test_correcting_the_cell_makes_commit_succeed() -> None:
    buf = make_buffer()
    buf.set_cell(0, "balance", "1.234")
    with pytest.raises(TypeCoercionError):
        commit_snapshot(buf.snapshot())

    buf.set_cell(0, "balance", "1.23")
    table = commit_snapshot(buf.snapshot()).table
    assert table.column("balance").to_pylist()[0] == Decimal("1.23")
    assert table.schema.field("balance").type == pa.decimal128(10, 2)


def test_every_edited_type_keeps_its_declared_type() -> None:
    buf = make_buffer()
    edits = {
        "id": "42",
        "name": "",
        "active": "yes",
        "score": "3",
        "balance": "7",
        "joined": "2001-02-03",
        "seen_at": "2024-01-01T00:00:00+01:00",
    }
    for column, text in edits.items():
        buf.set_cell(1, column, text)

    table = commit_snapshot(buf.snapshot()).table

    assert table.schema.equals(people_schema(), check_metadata=True)
    row = table.slice(1, 1).to_pylist()[0]
    assert row["id"] == 42
    assert row["name"] == ""
    assert row["active"] is True
    assert row["score"] == 3.0
    assert row["balance"] == Decimal("7.00")
    assert table.column("seen_at").cast(pa.int64()).to_pylist()[1] == 1_704_063_600_000_000


def test_deleted_rows_are_not_committed() -> None:
    buf = make_buffer()
    buf.delete_rows([0, 2])
    table = commit_snapshot(buf.snapshot()).table
    assert table.column("id").to_pylist() == [2]


def test_empty_snapshot_commits_typed_empty_table() -> None:
    buf = make_buffer()
    buf.delete_rows([0, 1, 2])
    table = commit_snapshot(buf.snapshot()).table
    assert table.num_rows == 0
    assert table.schema.equals(people_schema())


def test_parallel_commit_matches_sequential() -> None:
    buf = make_buffer()
    buf.set_cell(0, "score", "0.5")
    buf.set_cell(2, "name", "Cy")
    snap = buf.snapshot()

    assert commit_snapshot(snap, workers=4).table.equals(commit_snapshot(snap, workers=1).table)


def test_parallel_commit_reports_lowest_column_error() -> None:
    buf = make_buffer()
    buf.set_cell(2, "seen_at", "garbage")
    buf.set_cell(1, "active", "garbage")
    buf.set_cell(0, "joined", "garbage")

    for workers in (1, 4):
        with pytest.raises(TypeCoercionError) as excinfo:
            commit_snapshot(buf.snapshot(), workers=workers)
        assert excinfo.value.column == "active"


def test_first_failing_row_is_reported() -> None:
    buf = make_buffer(make_table({"n": (pa.int64(), [1, 2, 3, 4])}))
    buf.set_cell(3, "n", "x")
    buf.set_cell(1, "n", "y")
    with pytest.raises(TypeCoercionError) as excinfo:
        commit_snapshot(buf.snapshot())
    assert excinfo.value.row == 1


def test_mistyped_typed_cell_is_rejected() -> None:
    catalog = SchemaCatalog(columns=(Column("n", LogicalType.int64()),))
    snap = TableSnapshot(catalog=catalog, rows=((TypedCell("1"),),))
    with pytest.raises(TypeCoercionError):
        commit_snapshot(snap)


def test_ragged_snapshot_is_a_schema_mismatch() -> None:
    catalog = SchemaCatalog(columns=(Column("a", LogicalType.int64()), Column("b", LogicalType.int64())))
    snap = TableSnapshot(catalog=catalog, rows=((NULL,),))
    with pytest.raises(SchemaMismatchError):
        commit_snapshot(snap)


def test_nanosecond_timestamps_round_trip_exactly() -> None:
    arr = pa.array([1_700_000_000_000_000_001, None], type=pa.int64()).cast(pa.timestamp("ns"))
    source = pa.Table.from_arrays([arr], names=["t"])
    buf = make_buffer(source)
    buf.set_cell(1, "t", "2024-01-01T00:00:00.000000007")

    table = commit_snapshot(buf.snapshot()).table

    assert table.schema.field("t").type == pa.timestamp("ns")
    assert table.column("t").cast(pa.int64()).to_pylist() == [1_700_000_000_000_000_001, 1_704_067_200_000_000_007]
