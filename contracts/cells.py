"""Cell variants for the editable row model.

A cell is exactly one of:

- :data:`NULL`: the missing value
- :class:`TypedCell`: a value already valid for the owning column's
  :class:`~contracts.logical_types.LogicalType`,
- :class:`RawEdit`: unvalidated user text, resolved (or rejected) at commit.

Rows are tuples of cells positionally aligned with the schema catalog.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class NullCell:
    def __repr__(self) -> str:
        return "NULL"


@dataclass(frozen=True)
class TypedCell:
    value: Any


@dataclass(frozen=True)
class RawEdit:
    text: str


NULL = NullCell()

Cell = Union[NullCell, TypedCell, RawEdit]
Row = tuple[Cell, ...]


def is_null(cell: Cell) -> bool:
    return isinstance(cell, NullCell)


def cell_from_value(value: Any) -> Cell:
    """Wrap a decoded Python value (``None`` becomes :data:`NULL`)."""
    if value is None:
        return NULL
    return TypedCell(value)
