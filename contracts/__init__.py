"""Contracts: value types, schema catalog and error taxonomy.

The contracts package defines:
- the closed set of logical column types and their Arrow mapping
- the immutable schema catalog (ordered columns)
- the cell variants of the editable row model
- type-directed coercion of edited text (storage boundary)
- Protocol definitions for the codec and storage collaborators

Main exports:
- LogicalType, TypeKind, TimestampValue
- Column, SchemaCatalog
- Cell, NULL, TypedCell, RawEdit
- the error classes from contracts.errors
"""

from contracts import cells
from contracts import errors
from contracts import logical_types
from contracts import schema_catalog

# Explicit re-exports to satisfy ruff F401
__all__ = [
    "NULL",
    "Cell",
    "Column",
    "LogicalType",
    "RawEdit",
    "Row",
    "SchemaCatalog",
    "TimestampValue",
    "TypeKind",
    "TypedCell",
    *errors.__all__,
]

Cell = cells.Cell
NULL = cells.NULL
RawEdit = cells.RawEdit
Row = cells.Row
TypedCell = cells.TypedCell

LogicalType = logical_types.LogicalType
TimestampValue = logical_types.TimestampValue
TypeKind = logical_types.TypeKind

Column = schema_catalog.Column
SchemaCatalog = schema_catalog.SchemaCatalog

CellError = errors.CellError
DecodeError = errors.DecodeError
EncodeError = errors.EncodeError
ExportError = errors.ExportError
NoTableOpenError = errors.NoTableOpenError
NullabilityViolationError = errors.NullabilityViolationError
RowIndexError = errors.RowIndexError
SchemaMismatchError = errors.SchemaMismatchError
StorageError = errors.StorageError
StudioError = errors.StudioError
TypeCoercionError = errors.TypeCoercionError
UnknownColumnError = errors.UnknownColumnError
UnsupportedFormatError = errors.UnsupportedFormatError
UnsupportedTypeError = errors.UnsupportedTypeError
