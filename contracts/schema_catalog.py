"""Immutable description of a table's columns.

A :class:`SchemaCatalog` is derived once from a decoded source table and is
shared read-only by the load, commit and export stages. Shape-changing edits
(dropping a column) produce a new catalog; nothing mutates one in place.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import pyarrow as pa

from .errors import DecodeError, SchemaMismatchError, UnknownColumnError
from .logical_types import LogicalType, logical_type_from_arrow

# Schema-level metadata keys that describe row layout and go stale after edits
_DROPPED_SCHEMA_METADATA = frozenset({b"pandas"})

Metadata = tuple[tuple[bytes, bytes], ...]


def _freeze_metadata(metadata: Mapping[bytes, bytes] | None) -> Metadata:
    if not metadata:
        return ()
    return tuple((bytes(k), bytes(v)) for k, v in metadata.items())


@dataclass(frozen=True)
class Column:
    name: str
    type: LogicalType
    nullable: bool = True
    metadata: Metadata = ()

    def to_arrow_field(self) -> pa.Field:
        return pa.field(
            self.name,
            self.type.to_arrow(),
            nullable=self.nullable,
            metadata=dict(self.metadata) or None,
        )

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "type": str(self.type), "nullable": self.nullable}


@dataclass(frozen=True)
class SchemaCatalog:
    """
    Ordered, name-unique sequence of columns.

    Order is significant and preserved end-to-end.
    """
    columns: tuple[Column, ...]
    metadata: Metadata = ()
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, int] = {}
        for pos, col in enumerate(self.columns):
            if col.name in index:
                raise SchemaMismatchError(f"Duplicate column name: {col.name!r}")
            index[col.name] = pos
        object.__setattr__(self, "_index", index)

    # -----------------------------
    # Construction
    # -----------------------------

    @classmethod
    def from_arrow_schema(cls, schema: pa.Schema) -> SchemaCatalog:
        """
        Build a catalog from an Arrow schema.
        Raises UnsupportedTypeError for any field outside the supported tag set.
        """
        if len(set(schema.names)) != len(schema.names):
            raise DecodeError(f"Source table has duplicate column names: {schema.names}")
        columns = tuple(
            Column(
                name=f.name,
                type=logical_type_from_arrow(f.type, field_name=f.name),
                nullable=bool(f.nullable),
                metadata=_freeze_metadata(f.metadata),
            )
            for f in schema
        )
        kept = {k: v for k, v in (schema.metadata or {}).items() if k not in _DROPPED_SCHEMA_METADATA}
        return cls(columns=columns, metadata=_freeze_metadata(kept))

    @classmethod
    def from_source_table(cls, table: Any) -> SchemaCatalog:
        if not isinstance(table, pa.Table):
            raise DecodeError(f"Expected a decoded columnar table, got {type(table).__name__}")
        return cls.from_arrow_schema(table.schema)

    # -----------------------------
    # Lookup
    # -----------------------------

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def __getitem__(self, position: int) -> Column:
        return self.columns[position]

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column_index(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownColumnError(name) from None

    def column(self, name: str) -> Column:
        return self.columns[self.column_index(name)]

    # -----------------------------
    # Derivation
    # -----------------------------

    def without_column(self, name: str) -> SchemaCatalog:
        """New catalog with ``name`` removed; order of the rest is kept."""
        pos = self.column_index(name)
        return SchemaCatalog(columns=self.columns[:pos] + self.columns[pos + 1:], metadata=self.metadata)

    def to_arrow_schema(self) -> pa.Schema:
        return pa.schema(
            [c.to_arrow_field() for c in self.columns],
            metadata=dict(self.metadata) or None,
        )

    def describe(self) -> list[dict[str, Any]]:
        return [c.describe() for c in self.columns]
