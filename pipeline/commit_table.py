"""Commit stage: edit-buffer snapshot -> columnar table ready for encoding.

This is the storage boundary. Every column is coerced to the type recorded in
the schema catalog and assembled into an Arrow vector whose declared type
comes from the catalog, never from the values present. The committed schema
therefore always equals the loaded schema, whichever cells were edited.

The first failing cell aborts the whole commit; nothing partial is returned
and the snapshot's source buffer is never touched.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Sequence

import pyarrow as pa

from contracts.cells import Cell, RawEdit
from contracts.errors import CellError, SchemaMismatchError
from contracts.logical_types import TypeKind
from contracts.schema_catalog import Column
from contracts.storage_cast import resolve_cell
from infra.logging_config import StructuredLogger
from pipeline.edit_buffer import TableSnapshot

logger = StructuredLogger(__name__)


@dataclass
class CommitStats:
    rows: int = 0
    columns: int = 0
    coerced_cells: int = 0
    null_cells: int = 0


@dataclass(frozen=True)
class CommitResult:
    table: pa.Table
    stats: CommitStats = field(default_factory=CommitStats)


@dataclass(frozen=True)
class _ColumnOutcome:
    position: int
    array: pa.Array | None = None
    error: CellError | None = None
    coerced: int = 0
    nulls: int = 0


def _build_array(column: Column, values: Sequence[Any]) -> pa.Array:
    """Typed vector with the catalog's declared type."""
    arrow_type = column.type.to_arrow()
    if column.type.kind is TypeKind.TIMESTAMP:
        epochs = [None if v is None else v.epoch for v in values]
        return pa.array(epochs, type=pa.int64()).cast(arrow_type)
    return pa.array(values, type=arrow_type)


def _commit_column(position: int, column: Column, cells: Sequence[Cell]) -> _ColumnOutcome:
    values: List[Any] = []
    coerced = 0
    nulls = 0
    for row, cell in enumerate(cells):
        try:
            value = resolve_cell(cell, column.type, nullable=column.nullable, column=column.name, row=row)
        except CellError as exc:
            return _ColumnOutcome(position=position, error=exc)
        if isinstance(cell, RawEdit):
            coerced += 1
        if value is None:
            nulls += 1
        values.append(value)

    try:
        array = _build_array(column, values)
    except (pa.ArrowInvalid, pa.ArrowTypeError, OverflowError) as exc:
        # Coercion validated every value; Arrow disagreeing is an engine defect
        raise SchemaMismatchError(f"Column {column.name!r} rejected by Arrow after coercion: {exc}") from exc
    return _ColumnOutcome(position=position, array=array, coerced=coerced, nulls=nulls)


def commit_snapshot(snapshot: TableSnapshot, *, workers: int = 1) -> CommitResult:
    """
    Rebuild a columnar table from a snapshot.

    Columns are independent; with ``workers > 1`` they are coerced on a thread
    pool. Results are placed by column position and, when several columns
    fail, the error of the lowest column position is raised, so the outcome
    matches a sequential run.

    Raises NullabilityViolationError / TypeCoercionError (recoverable) or
    SchemaMismatchError (defect).
    """
    catalog = snapshot.catalog
    width = len(catalog)
    for idx, row in enumerate(snapshot.rows):
        if len(row) != width:
            raise SchemaMismatchError(f"Row {idx} has {len(row)} cells, schema has {width} columns")

    jobs = [(pos, col, snapshot.column_cells(pos)) for pos, col in enumerate(catalog)]

    outcomes: list[_ColumnOutcome]
    if workers > 1 and width > 1:
        with ThreadPoolExecutor(max_workers=min(workers, width)) as pool:
            futures = [pool.submit(_commit_column, *job) for job in jobs]
            outcomes = [f.result() for f in futures]
    else:
        outcomes = []
        for job in jobs:
            outcome = _commit_column(*job)
            outcomes.append(outcome)
            if outcome.error is not None:
                break

    for outcome in sorted(outcomes, key=lambda o: o.position):
        if outcome.error is not None:
            logger.warning("commit_failed", **outcome.error.to_dict())
            raise outcome.error

    arrays = [o.array for o in sorted(outcomes, key=lambda o: o.position)]
    table = pa.Table.from_arrays(arrays, schema=catalog.to_arrow_schema())

    stats = CommitStats(
        rows=snapshot.row_count,
        columns=width,
        coerced_cells=sum(o.coerced for o in outcomes),
        null_cells=sum(o.nulls for o in outcomes),
    )
    logger.info(
        "commit_built",
        rows=stats.rows,
        columns=stats.columns,
        coerced=stats.coerced_cells,
        revision=snapshot.revision,
    )
    return CommitResult(table=table, stats=stats)
