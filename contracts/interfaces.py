"""
Protocol definitions for the engine's external collaborators.

The engine never touches disk or the binary file format directly. It talks to
a codec (bytes <-> columnar table) and a storage backend (path <-> bytes)
through these Protocols, which keeps the engine testable with in-memory fakes.

Usage:
    from contracts.interfaces import CodecProtocol, StorageProtocol

    # In production, use pipeline.codec_parquet / pipeline.storage
    # In tests, any object with the same methods works
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import pyarrow as pa


@runtime_checkable
class CodecProtocol(Protocol):
    """Decode/encode a columnar file format."""

    name: str

    def decode(self, data: bytes) -> pa.Table:
        """Decode bytes into a table. Raises DecodeError on malformed input."""
        ...

    def encode(self, table: pa.Table) -> bytes:
        """Encode a table into bytes. Raises EncodeError on structural violations."""
        ...


@runtime_checkable
class StorageProtocol(Protocol):
    """Raw byte I/O for a path-addressed store."""

    def read(self, path: str) -> bytes:
        """Read all bytes at path. Raises StorageError."""
        ...

    def write(self, path: str, data: bytes) -> None:
        """Write all bytes to path, all-or-nothing. Raises StorageError."""
        ...
