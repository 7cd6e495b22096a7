"""Session facade: the surface the UI layer (or the CLI) talks to.

A session holds at most one open table generation: the schema catalog, the
edit buffer and the codec chosen for the file. Every operation that replaces
state (open, drop_column) builds the new generation completely before
installing it, and save only writes bytes that a successful commit produced,
so an abandoned or failed operation never leaves half-built state behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List

from contracts.cells import Cell
from contracts.errors import NoTableOpenError, SchemaMismatchError
from contracts.interfaces import CodecProtocol, StorageProtocol
from contracts.schema_catalog import SchemaCatalog
from infra.config import Settings, get_settings
from infra.logging_config import StructuredLogger, clear_session_context, set_session_context
from pipeline.codec_parquet import codec_for_path
from pipeline.commit_table import CommitResult, commit_snapshot
from pipeline.edit_buffer import EditBuffer, TableSnapshot
from pipeline.export_rows import ExportReport, export_snapshot
from pipeline.load_table import load_table
from pipeline.storage import LocalFileStorage
from services.recent_files import RecentFiles

logger = StructuredLogger(__name__)


@dataclass(frozen=True)
class LoadSummary:
    path: str
    row_count: int
    column_count: int
    catalog: SchemaCatalog


@dataclass(frozen=True)
class SessionStatus:
    path: str | None
    row_count: int
    column_count: int
    selected: int
    dirty: bool
    revision: int


@dataclass
class _Generation:
    path: str
    codec: CodecProtocol
    buffer: EditBuffer
    number: int
    saved_revision: int = 0


class StudioSession:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        storage: StorageProtocol | None = None,
        recent: RecentFiles | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.storage = storage or LocalFileStorage()
        self.recent = recent or RecentFiles(
            state_file=self.settings.session.state_file,
            max_entries=self.settings.session.max_recent_files,
        )
        self._gen: _Generation | None = None
        self._generation_counter = 0

    # -----------------------------
    # Internal helpers
    # -----------------------------

    def _require(self) -> _Generation:
        if self._gen is None:
            raise NoTableOpenError("No table is open")
        return self._gen

    @property
    def buffer(self) -> EditBuffer:
        return self._require().buffer

    @property
    def catalog(self) -> SchemaCatalog:
        return self._require().buffer.catalog

    @property
    def is_open(self) -> bool:
        return self._gen is not None

    def _install(self, path: str, codec: CodecProtocol, buffer: EditBuffer) -> _Generation:
        self._generation_counter += 1
        gen = _Generation(path=path, codec=codec, buffer=buffer, number=self._generation_counter)
        self._gen = gen
        set_session_context(path=path, generation=gen.number)
        return gen

    # -----------------------------
    # Load(path)
    # -----------------------------

    def open(self, path: str | Path) -> LoadSummary:
        """Decode and load a file; the current table is kept if anything fails."""
        path_str = str(path)
        codec = codec_for_path(path_str, self.settings.codec)
        data = self.storage.read(path_str)
        loaded = load_table(codec.decode(data))
        buffer = EditBuffer(loaded.catalog, loaded.rows)

        self._install(path_str, codec, buffer)
        self.recent.remember(path_str)
        logger.info("file_opened", rows=buffer.row_count, columns=buffer.column_count, codec=codec.name)
        return LoadSummary(
            path=path_str,
            row_count=buffer.row_count,
            column_count=buffer.column_count,
            catalog=loaded.catalog,
        )

    def open_last(self) -> LoadSummary | None:
        """Reopen the most recently opened file, if it still exists."""
        last = self.recent.last()
        if not last or not Path(last).exists():
            return None
        return self.open(last)

    def close(self) -> None:
        self._gen = None
        clear_session_context()

    # -----------------------------
    # Edit / DeleteRows / selection
    # -----------------------------

    def edit(self, row_index: int, column: str, value: Any) -> Cell:
        return self.buffer.set_cell(row_index, column, value)

    def delete_rows(self, indices: Iterable[int]) -> int:
        return self.buffer.delete_rows(indices)

    def select_rows(self, indices: Iterable[int]) -> None:
        self.buffer.select_rows(indices)

    def deselect_rows(self, indices: Iterable[int]) -> None:
        self.buffer.deselect_rows(indices)

    def delete_selected(self) -> int:
        return self.buffer.delete_selected()

    def drop_column(self, name: str) -> SchemaCatalog:
        """Start a new generation without column ``name``."""
        gen = self._require()
        old = gen.buffer
        pos = old.catalog.column_index(name)
        catalog = old.catalog.without_column(name)
        rows = [row[:pos] + row[pos + 1:] for row in old.snapshot().rows]
        buffer = EditBuffer(catalog, rows)

        new_gen = self._install(gen.path, gen.codec, buffer)
        # Column removal is an unsaved change
        new_gen.saved_revision = -1
        logger.info("column_dropped", column=name, columns=len(catalog))
        return catalog

    def snapshot(self) -> TableSnapshot:
        return self.buffer.snapshot()

    # -----------------------------
    # Commit / Save
    # -----------------------------

    def commit_table(self) -> CommitResult:
        """Coerce the current snapshot into a columnar table (no encoding)."""
        return commit_snapshot(self.snapshot(), workers=self.settings.commit.workers)

    def commit(self) -> bytes:
        """
        Build the encoded file bytes for the current state.
        The buffer is left unchanged whether or not this succeeds.
        """
        gen = self._require()
        try:
            result = self.commit_table()
        except SchemaMismatchError:
            logger.exception("commit_invariant_violated")
            raise
        data = gen.codec.encode(result.table)
        logger.info("commit_encoded", bytes=len(data), rows=result.stats.rows)
        return data

    def save(self, path: str | Path | None = None) -> str:
        """Commit and write atomically; ``path`` defaults to the opened file."""
        gen = self._require()
        target = str(path) if path is not None else gen.path
        revision = gen.buffer.revision

        codec = gen.codec if path is None else codec_for_path(target, self.settings.codec)
        result = self.commit_table()
        data = codec.encode(result.table)
        self.storage.write(target, data)

        if target == gen.path:
            gen.saved_revision = revision
        logger.info("file_saved", target=target, bytes=len(data))
        return target

    # -----------------------------
    # Export
    # -----------------------------

    def export(self, fmt: str, target: str | Path) -> ExportReport:
        return export_snapshot(
            self.snapshot(),
            fmt,
            str(target),
            storage=self.storage,
            settings=self.settings.export,
        )

    # -----------------------------
    # Status
    # -----------------------------

    def status(self) -> SessionStatus:
        if self._gen is None:
            return SessionStatus(path=None, row_count=0, column_count=0, selected=0, dirty=False, revision=0)
        buf = self._gen.buffer
        return SessionStatus(
            path=self._gen.path,
            row_count=buf.row_count,
            column_count=buf.column_count,
            selected=len(buf.selected_indices()),
            dirty=buf.revision != self._gen.saved_revision,
            revision=buf.revision,
        )

    def recent_files(self) -> List[str]:
        return self.recent.list()
