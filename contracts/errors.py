"""Error taxonomy for the table engine.

Every error raised by the engine derives from :class:`StudioError` so callers
(the session facade, the CLI) can catch one base class. Errors that indicate
bad user input at commit time derive from :class:`CellError`; they are
recoverable by correcting the offending cell and committing again.
"""

from __future__ import annotations

from typing import Any


class StudioError(RuntimeError):
    """Base class for all engine errors."""


# -----------------------------
# External boundary
# -----------------------------


class DecodeError(StudioError):
    """Raised when the codec cannot decode the input bytes into a table."""


class EncodeError(StudioError):
    """Raised when the codec rejects a table on encode."""


class StorageError(StudioError):
    """Raised when reading or writing the backing file fails."""


class UnsupportedFormatError(StudioError):
    """Raised when no codec or exporter is registered for a format."""


class ExportError(StudioError):
    """Raised when an export attempt fails as a whole."""


# -----------------------------
# Schema / programming errors
# -----------------------------


class UnsupportedTypeError(StudioError):
    """Raised when a source field uses a type outside the supported tag set."""

    def __init__(self, field_name: str, type_name: str) -> None:
        super().__init__(f"Unsupported type for column {field_name!r}: {type_name}")
        self.field_name = field_name
        self.type_name = type_name


class UnknownColumnError(StudioError, KeyError):
    """Raised when a column name is not part of the schema catalog."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown column: {name!r}")
        self.name = name

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class RowIndexError(StudioError, IndexError):
    """Raised when a row index is outside the current row range."""

    def __init__(self, index: int, row_count: int) -> None:
        super().__init__(f"Row index {index} out of range (row_count={row_count})")
        self.index = index
        self.row_count = row_count


class SchemaMismatchError(StudioError):
    """Internal invariant violation: rows and schema disagree in shape."""


class NoTableOpenError(StudioError):
    """Raised when a session operation needs a table and none is open."""


# -----------------------------
# Recoverable cell errors
# -----------------------------


class CellError(StudioError, ValueError):
    """A single cell cannot be committed as-is.

    Carries enough context for the UI to point at the offending cell.
    """

    kind = "cell_error"

    def __init__(self, *, column: str, row: int | None, value: Any, reason: str) -> None:
        where = f"column {column!r}" if row is None else f"column {column!r}, row {row}"
        super().__init__(f"{where}: {reason} (value={value!r})")
        self.column = column
        self.row = row
        self.value = value
        self.reason = reason

    def at(self, *, column: str, row: int) -> CellError:
        """Return a copy of this error bound to a concrete cell position."""
        return type(self)(column=column, row=row, value=self.value, reason=self.reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.kind,
            "column": self.column,
            "row": self.row,
            "value": self.value,
            "reason": self.reason,
        }


class NullabilityViolationError(CellError):
    """Null in a column declared non-nullable."""

    kind = "nullability_violation"


class TypeCoercionError(CellError):
    """Raw edited text cannot be converted to the column's logical type."""

    kind = "type_coercion"


__all__ = [
    "CellError",
    "DecodeError",
    "EncodeError",
    "ExportError",
    "NoTableOpenError",
    "NullabilityViolationError",
    "RowIndexError",
    "SchemaMismatchError",
    "StorageError",
    "StudioError",
    "TypeCoercionError",
    "UnknownColumnError",
    "UnsupportedFormatError",
    "UnsupportedTypeError",
]
