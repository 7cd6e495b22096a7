"""Load stage: decoded columnar table -> schema catalog + typed rows.

Each column is read in source order into properly typed cells. Timestamps are
read as raw integer epochs (cast to int64) and wrapped in
:class:`~contracts.logical_types.TimestampValue`, so nanosecond values never
pass through ``datetime``. Decimals come out of Arrow as exact ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pyarrow as pa

from contracts.cells import NULL, Cell, Row, TypedCell
from contracts.errors import DecodeError, SchemaMismatchError
from contracts.logical_types import LogicalType, TimestampValue, TypeKind
from contracts.schema_catalog import SchemaCatalog
from infra.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class LoadedTable:
    """One generation: the catalog and the initial row sequence."""

    catalog: SchemaCatalog
    rows: list[Row]

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _column_values(column: pa.ChunkedArray, logical_type: LogicalType) -> list[Any]:
    """Python values for one column, ``None`` for nulls."""
    if logical_type.kind is TypeKind.TIMESTAMP:
        epochs = column.cast(pa.int64()).to_pylist()
        unit = str(logical_type.unit)
        return [
            None if e is None else TimestampValue(epoch=e, unit=unit, tz=logical_type.tz)
            for e in epochs
        ]
    return column.to_pylist()


def column_to_cells(column: pa.ChunkedArray, logical_type: LogicalType) -> list[Cell]:
    return [NULL if v is None else TypedCell(v) for v in _column_values(column, logical_type)]


def load_table(table: Any) -> LoadedTable:
    """
    Convert a decoded table into a SchemaCatalog and positionally aligned rows.

    Raises:
      - DecodeError: the handle is not a table, or Arrow fails to materialize it
      - UnsupportedTypeError: a field's type is outside the supported tag set
      - SchemaMismatchError: column lengths disagree with the row count
    """
    catalog = SchemaCatalog.from_source_table(table)
    num_rows = table.num_rows

    if table.num_columns != len(catalog):
        raise SchemaMismatchError(
            f"Table has {table.num_columns} columns but schema describes {len(catalog)}"
        )

    columns: list[list[Cell]] = []
    for position, col in enumerate(catalog):
        try:
            cells = column_to_cells(table.column(position), col.type)
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError, pa.ArrowTypeError) as exc:
            raise DecodeError(f"Cannot read column {col.name!r}: {exc}") from exc
        if len(cells) != num_rows:
            raise SchemaMismatchError(
                f"Column {col.name!r} has {len(cells)} values, expected {num_rows}"
            )
        columns.append(cells)

    rows: list[Row] = [tuple(values) for values in zip(*columns)] if columns else [() for _ in range(num_rows)]

    logger.info("table_loaded", rows=num_rows, columns=len(catalog))
    return LoadedTable(catalog=catalog, rows=rows)
