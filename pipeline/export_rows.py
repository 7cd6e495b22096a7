"""One-way, best-effort export of a snapshot to flat formats.

Formats:
  - csv  (flat-text): header row + one line per row, canonical cell text
  - json (structured-text): list of objects keyed by column name
  - xlsx (spreadsheet): one sheet with a header row, native cell values

Nothing here round-trips or recovers types. A cell that a target cannot
represent is left blank and reported as a warning instead of aborting the
export. The edit buffer is only ever read through its snapshot.
"""

from __future__ import annotations

import csv
import io
import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List

from openpyxl import Workbook
from openpyxl.utils.exceptions import IllegalCharacterError

from contracts.cells import Cell, NullCell, RawEdit
from contracts.errors import ExportError, StorageError, UnsupportedFormatError
from contracts.interfaces import StorageProtocol
from contracts.logical_types import LogicalType, TimestampValue, TypeKind
from contracts.storage_cast import format_value, timestamp_to_datetime
from infra.config import ExportSettings
from infra.logging_config import StructuredLogger
from pipeline.edit_buffer import TableSnapshot

logger = StructuredLogger(__name__)

_EXCEL_MAX_ROWS = 1_048_576
_EXCEL_MAX_COLUMNS = 16_384
# Excel keeps 15 significant digits
_EXCEL_SAFE_INT = 10**15


@dataclass(frozen=True)
class ExportWarning:
    row: int
    column: str
    reason: str


@dataclass
class ExportReport:
    target: str
    fmt: str
    rows: int = 0
    warnings: List[ExportWarning] = field(default_factory=list)


class _CellSkipped(Exception):
    """A single cell cannot be represented in the export target."""


def _cell_value(cell: Cell) -> Any:
    if isinstance(cell, NullCell):
        return None
    if isinstance(cell, RawEdit):
        return cell.text
    return cell.value


def _text(cell: Cell, logical_type: LogicalType) -> str:
    if isinstance(cell, RawEdit):
        return cell.text
    try:
        return format_value(_cell_value(cell), logical_type)
    except (OverflowError, ValueError) as exc:
        raise _CellSkipped(str(exc)) from exc


def _json_value(cell: Cell, logical_type: LogicalType) -> Any:
    value = _cell_value(cell)
    if value is None or isinstance(cell, RawEdit):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        return repr(value)
    if isinstance(value, (bool, int, float, str)):
        return value
    return _text(cell, logical_type)


def _xlsx_value(cell: Cell, logical_type: LogicalType) -> Any:
    value = _cell_value(cell)
    if value is None or isinstance(cell, RawEdit):
        return value
    if isinstance(value, TimestampValue):
        if value.unit == "ns" and value.epoch % 1_000:
            raise _CellSkipped("sub-microsecond timestamp not representable in a spreadsheet")
        try:
            dt = timestamp_to_datetime(value)
        except OverflowError as exc:
            raise _CellSkipped(str(exc)) from exc
        # Excel has no timezones: write UTC wall-clock
        return dt.replace(tzinfo=None)
    if isinstance(value, float) and not math.isfinite(value):
        return repr(value)
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) >= _EXCEL_SAFE_INT:
        return str(value)
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, Decimal) and logical_type.kind is TypeKind.DECIMAL and len(value.as_tuple().digits) > 15:
        return format(value, "f")
    return value


# -----------------------------
# Writers
# -----------------------------


def _render_csv(snapshot: TableSnapshot, settings: ExportSettings, report: ExportReport) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=settings.csv_delimiter, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    columns = list(snapshot.catalog)
    writer.writerow([c.name for c in columns])
    for row_idx, row in enumerate(snapshot.rows):
        out: List[str] = []
        for col, cell in zip(columns, row):
            try:
                out.append(_text(cell, col.type))
            except _CellSkipped as exc:
                report.warnings.append(ExportWarning(row=row_idx, column=col.name, reason=str(exc)))
                out.append("")
        writer.writerow(out)
        report.rows += 1
    return buf.getvalue().encode("utf-8")


def _render_json(snapshot: TableSnapshot, settings: ExportSettings, report: ExportReport) -> bytes:
    columns = list(snapshot.catalog)
    records: List[Dict[str, Any]] = []
    for row_idx, row in enumerate(snapshot.rows):
        rec: Dict[str, Any] = {}
        for col, cell in zip(columns, row):
            try:
                rec[col.name] = _json_value(cell, col.type)
            except _CellSkipped as exc:
                report.warnings.append(ExportWarning(row=row_idx, column=col.name, reason=str(exc)))
                rec[col.name] = None
        records.append(rec)
        report.rows += 1
    indent = settings.json_indent or None
    return json.dumps(records, indent=indent, ensure_ascii=False).encode("utf-8")


def _write_cell(ws: Any, row: int, column: int, value: Any) -> None:
    target = ws.cell(row=row, column=column, value=value)
    # openpyxl treats any "=..." string as a formula
    if isinstance(value, str) and value.startswith("="):
        target.data_type = "s"


def _render_xlsx(snapshot: TableSnapshot, settings: ExportSettings, report: ExportReport) -> bytes:
    columns = list(snapshot.catalog)
    if snapshot.row_count + 1 > _EXCEL_MAX_ROWS or len(columns) > _EXCEL_MAX_COLUMNS:
        raise ExportError(
            f"Table too large for a spreadsheet ({snapshot.row_count} rows, {len(columns)} columns)"
        )

    wb = Workbook()
    ws = wb.active
    ws.title = settings.sheet_name
    for col_idx, col in enumerate(columns, start=1):
        try:
            _write_cell(ws, 1, col_idx, col.name)
        except IllegalCharacterError as exc:
            raise ExportError(f"Column name {col.name!r} cannot be written to a spreadsheet") from exc

    for row_idx, row in enumerate(snapshot.rows):
        for col_idx, (col, cell) in enumerate(zip(columns, row), start=1):
            try:
                _write_cell(ws, row_idx + 2, col_idx, _xlsx_value(cell, col.type))
            except (_CellSkipped, IllegalCharacterError, ValueError) as exc:
                reason = str(exc) or type(exc).__name__
                report.warnings.append(ExportWarning(row=row_idx, column=col.name, reason=reason))
        report.rows += 1

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


Renderer = Callable[[TableSnapshot, ExportSettings, ExportReport], bytes]

_RENDERERS: Dict[str, Renderer] = {
    "csv": _render_csv,
    "json": _render_json,
    "xlsx": _render_xlsx,
}

_ALIASES = {
    "flat-text": "csv",
    "structured-text": "json",
    "spreadsheet": "xlsx",
    "excel": "xlsx",
}


def normalize_format(fmt: str) -> str:
    key = str(fmt or "").strip().lower()
    key = _ALIASES.get(key, key)
    if key not in _RENDERERS:
        raise UnsupportedFormatError(f"Unknown export format {fmt!r}; supported: {', '.join(sorted(_RENDERERS))}")
    return key


def export_snapshot(
    snapshot: TableSnapshot,
    fmt: str,
    target: str,
    *,
    storage: StorageProtocol,
    settings: ExportSettings | None = None,
) -> ExportReport:
    """
    Render ``snapshot`` in ``fmt`` and write it to ``target`` through ``storage``.
    Raises UnsupportedFormatError or ExportError; per-cell problems become warnings.
    """
    key = normalize_format(fmt)
    cfg = settings or ExportSettings()
    report = ExportReport(target=str(target), fmt=key)

    data = _RENDERERS[key](snapshot, cfg, report)
    try:
        storage.write(str(target), data)
    except StorageError as exc:
        raise ExportError(f"Export to {target} failed: {exc}") from exc

    for w in report.warnings:
        logger.warning("export_cell_skipped", row=w.row, column=w.column, reason=w.reason)
    logger.info("export_written", fmt=key, target=str(target), rows=report.rows, warnings=len(report.warnings))
    return report
