"""Columnar file codecs (bytes <-> Arrow table).

The engine treats the binary format as a black box behind
:class:`contracts.interfaces.CodecProtocol`. These are the concrete codecs:
Parquet via ``pyarrow.parquet`` and the Arrow IPC file format via
``pyarrow.ipc``. Codecs are looked up by file suffix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List

import pyarrow as pa
import pyarrow.ipc as ipc
import pyarrow.parquet as pq

from contracts.errors import DecodeError, EncodeError, UnsupportedFormatError
from contracts.interfaces import CodecProtocol
from infra.config import CodecConfig


@dataclass(frozen=True)
class ParquetCodec:
    """Parquet codec. Encode settings come from :class:`CodecConfig`."""

    config: CodecConfig = field(default_factory=CodecConfig)
    name: str = "parquet"

    def decode(self, data: bytes) -> pa.Table:
        try:
            return pq.read_table(pa.BufferReader(data))
        except (pa.ArrowException, OSError) as exc:
            raise DecodeError(f"Cannot decode Parquet data: {exc}") from exc

    def encode(self, table: pa.Table) -> bytes:
        compression = None if self.config.compression == "none" else self.config.compression
        sink = pa.BufferOutputStream()
        try:
            pq.write_table(
                table,
                sink,
                compression=compression,
                use_dictionary=self.config.use_dictionary,
                write_statistics=self.config.write_statistics,
            )
        except (pa.ArrowException, OSError) as exc:
            raise EncodeError(f"Cannot encode Parquet data: {exc}") from exc
        return sink.getvalue().to_pybytes()


@dataclass(frozen=True)
class ArrowIpcCodec:
    """Arrow IPC file format (.arrow / .feather v2)."""

    name: str = "arrow"

    def decode(self, data: bytes) -> pa.Table:
        try:
            return ipc.open_file(pa.BufferReader(data)).read_all()
        except (pa.ArrowException, OSError) as exc:
            raise DecodeError(f"Cannot decode Arrow IPC data: {exc}") from exc

    def encode(self, table: pa.Table) -> bytes:
        sink = pa.BufferOutputStream()
        try:
            with ipc.new_file(sink, table.schema) as writer:
                writer.write_table(table)
        except (pa.ArrowException, OSError) as exc:
            raise EncodeError(f"Cannot encode Arrow IPC data: {exc}") from exc
        return sink.getvalue().to_pybytes()


CodecFactory = Callable[[CodecConfig], CodecProtocol]

_REGISTRY: Dict[str, CodecFactory] = {}


def register_codec(*suffixes: str) -> Callable[[CodecFactory], CodecFactory]:
    """Register a codec factory for one or more file suffixes (``.parquet``)."""
    def _decorator(factory: CodecFactory) -> CodecFactory:
        for suffix in suffixes:
            key = suffix.lower()
            if key in _REGISTRY:
                raise KeyError(f"Codec already registered for '{key}'")
            _REGISTRY[key] = factory
        return factory
    return _decorator


register_codec(".parquet", ".pq")(lambda cfg: ParquetCodec(config=cfg))
register_codec(".arrow", ".feather", ".ipc")(lambda cfg: ArrowIpcCodec())


def codec_for_path(path: str | Path, config: CodecConfig | None = None) -> CodecProtocol:
    suffix = Path(path).suffix.lower()
    factory = _REGISTRY.get(suffix)
    if factory is None:
        raise UnsupportedFormatError(
            f"No codec for {suffix or 'files without a suffix'!r}; supported: {', '.join(list_suffixes())}"
        )
    return factory(config or CodecConfig())


def list_suffixes() -> List[str]:
    """All registered suffixes in deterministic order."""
    return sorted(_REGISTRY.keys())
