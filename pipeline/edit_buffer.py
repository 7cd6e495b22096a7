"""The single mutable surface of the engine.

Rows live in an arena addressed by stable integer handles; display order is
a separate list of handles. The public API is positional (row index at call
time), while selection is tracked by handle so it survives edits and the
deletion of other rows.

The buffer performs no I/O and never changes the column count.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from contracts.cells import NULL, Cell, NullCell, RawEdit, Row, TypedCell
from contracts.errors import RowIndexError, SchemaMismatchError
from contracts.schema_catalog import SchemaCatalog
from infra.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class TableSnapshot:
    """Read-only (catalog, rows) pair as of ``revision``."""

    catalog: SchemaCatalog
    rows: tuple[Row, ...]
    revision: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_cells(self, position: int) -> list[Cell]:
        return [row[position] for row in self.rows]


class EditBuffer:
    def __init__(self, catalog: SchemaCatalog, rows: Iterable[Row] = ()) -> None:
        self._catalog = catalog
        self._rows: dict[int, list[Cell]] = {}
        self._order: list[int] = []
        self._selected: set[int] = set()
        self._next_handle = 0
        self.revision = 0

        width = len(catalog)
        for pos, row in enumerate(rows):
            if len(row) != width:
                raise SchemaMismatchError(f"Row {pos} has {len(row)} cells, schema has {width} columns")
            self._append(list(row))

    def _append(self, cells: list[Cell]) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._rows[handle] = cells
        self._order.append(handle)
        return handle

    # -----------------------------
    # Read access
    # -----------------------------

    @property
    def catalog(self) -> SchemaCatalog:
        return self._catalog

    @property
    def row_count(self) -> int:
        return len(self._order)

    @property
    def column_count(self) -> int:
        return len(self._catalog)

    def handle_at(self, row_index: int) -> int:
        if not isinstance(row_index, int) or isinstance(row_index, bool) or not 0 <= row_index < len(self._order):
            raise RowIndexError(row_index, len(self._order))
        return self._order[row_index]

    def index_of(self, handle: int) -> int | None:
        """Current display position of a row handle, or None if deleted."""
        try:
            return self._order.index(handle)
        except ValueError:
            return None

    def get_cell(self, row_index: int, column_name: str) -> Cell:
        pos = self._catalog.column_index(column_name)
        return self._rows[self.handle_at(row_index)][pos]

    def get_row(self, row_index: int) -> Row:
        return tuple(self._rows[self.handle_at(row_index)])

    def snapshot(self) -> TableSnapshot:
        """Copy of the current state; later edits do not leak into it."""
        rows = tuple(tuple(self._rows[h]) for h in self._order)
        return TableSnapshot(catalog=self._catalog, rows=rows, revision=self.revision)

    # -----------------------------
    # Mutation
    # -----------------------------

    def set_cell(self, row_index: int, column_name: str, raw_input: Any) -> Cell:
        """
        Store an edit and return the stored cell.

        ``None`` becomes Null, text becomes a RawEdit resolved at commit, and a
        value the column type already accepts (a bool for a boolean column,
        for example) is stored typed right away.
        """
        pos = self._catalog.column_index(column_name)
        handle = self.handle_at(row_index)
        column = self._catalog[pos]

        cell: Cell
        if raw_input is None:
            cell = NULL
        elif isinstance(raw_input, (NullCell, RawEdit, TypedCell)):
            cell = raw_input
        elif isinstance(raw_input, str):
            cell = RawEdit(raw_input)
        elif column.type.accepts(raw_input):
            cell = TypedCell(raw_input)
        else:
            cell = RawEdit(str(raw_input))

        self._rows[handle][pos] = cell
        self.revision += 1
        logger.debug("cell_set", row=row_index, column=column_name, cell=type(cell).__name__)
        return cell

    def delete_rows(self, indices: Iterable[int]) -> int:
        """
        Remove rows at the given positions and return the new row count.

        Indices are resolved against the current order; positions outside the
        range are ignored, so repeating a deletion is a no-op.
        """
        count = len(self._order)
        doomed = {self._order[i] for i in set(indices) if isinstance(i, int) and 0 <= i < count}
        if not doomed:
            return count

        self._order = [h for h in self._order if h not in doomed]
        for handle in doomed:
            del self._rows[handle]
        self._selected -= doomed
        self.revision += 1
        logger.info("rows_deleted", deleted=len(doomed), remaining=len(self._order))
        return len(self._order)

    # -----------------------------
    # Selection
    # -----------------------------

    def select_rows(self, indices: Iterable[int]) -> None:
        for i in indices:
            self._selected.add(self.handle_at(i))

    def deselect_rows(self, indices: Iterable[int]) -> None:
        for i in indices:
            self._selected.discard(self.handle_at(i))

    def clear_selection(self) -> None:
        self._selected.clear()

    def selected_indices(self) -> list[int]:
        return [pos for pos, h in enumerate(self._order) if h in self._selected]

    def delete_selected(self) -> int:
        count = self.delete_rows(self.selected_indices())
        self._selected.clear()
        return count
