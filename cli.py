"""
parquet-studio CLI (flat-layout friendly).

Usage
-----
parquet-studio info data/sales.parquet
parquet-studio export data/sales.parquet --format csv --out sales.csv
parquet-studio edit data/sales.parquet --set 0:amount=12.50 --null 3:note --delete 4,7 --out fixed.parquet
parquet-studio recent
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional, Tuple

from contracts.errors import CellError, StudioError
from infra.config import get_settings
from infra.logging_config import setup_logging
from services.session import StudioSession
from version import ENGINE_NAME, ENGINE_VERSION


def _print_json(payload: object) -> None:
    json.dump(payload, sys.stdout, indent=2, ensure_ascii=False, default=str)
    sys.stdout.write("\n")


def _parse_cell_ref(text: str) -> Tuple[int, str]:
    row_text, sep, column = text.partition(":")
    if not sep or not column:
        raise SystemExit(f"Invalid cell reference {text!r}; expected ROW:COLUMN")
    try:
        return int(row_text), column
    except ValueError as exc:
        raise SystemExit(f"Invalid row index in {text!r}") from exc


def _parse_assignment(text: str) -> Tuple[int, str, str]:
    ref, sep, value = text.partition("=")
    if not sep:
        raise SystemExit(f"Invalid assignment {text!r}; expected ROW:COLUMN=VALUE")
    row, column = _parse_cell_ref(ref)
    return row, column, value


def _parse_indices(text: str) -> List[int]:
    out: List[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            out.append(int(part))
        except ValueError as exc:
            raise SystemExit(f"Invalid row index {part!r}") from exc
    return out


def cmd_info(args: argparse.Namespace) -> None:
    session = StudioSession()
    summary = session.open(args.file)
    _print_json(
        {
            "path": summary.path,
            "rows": summary.row_count,
            "columns": summary.catalog.describe(),
        }
    )


def cmd_export(args: argparse.Namespace) -> None:
    session = StudioSession()
    session.open(args.file)
    report = session.export(args.format, args.out)
    _print_json(
        {
            "target": report.target,
            "format": report.fmt,
            "rows": report.rows,
            "warnings": [{"row": w.row, "column": w.column, "reason": w.reason} for w in report.warnings],
        }
    )


def cmd_edit(args: argparse.Namespace) -> None:
    session = StudioSession()
    session.open(args.file)

    for assignment in args.set or []:
        row, column, value = _parse_assignment(assignment)
        session.edit(row, column, value)
    for ref in args.null or []:
        row, column = _parse_cell_ref(ref)
        session.edit(row, column, None)
    # Cell references above use positions from before any deletion
    if args.delete:
        session.delete_rows(_parse_indices(args.delete))

    try:
        target = session.save(args.out)
    except CellError as exc:
        _print_json(exc.to_dict())
        raise SystemExit(1) from exc

    status = session.status()
    _print_json({"saved": target, "rows": status.row_count, "columns": status.column_count})


def cmd_recent(args: argparse.Namespace) -> None:  # pylint: disable=unused-argument
    session = StudioSession()
    for path in session.recent_files():
        print(path)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="parquet-studio", description="Inspect, edit and export columnar files.")
    p.add_argument("--version", action="version", version=f"{ENGINE_NAME} {ENGINE_VERSION}")
    p.add_argument("--log-level", default=None, help="Log level (or STUDIO_LOG_LEVEL env var).")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("info", help="Print the row count and column schema of a file.")
    sp.add_argument("file", help="Parquet or Arrow IPC file.")
    sp.set_defaults(func=cmd_info)

    sp = sub.add_parser("export", help="Export a file to csv, json or xlsx.")
    sp.add_argument("file", help="Parquet or Arrow IPC file.")
    sp.add_argument("--format", required=True, help="csv | json | xlsx")
    sp.add_argument("--out", required=True, help="Output path.")
    sp.set_defaults(func=cmd_export)

    sp = sub.add_parser("edit", help="Apply cell edits and row deletions, then save.")
    sp.add_argument("file", help="Parquet or Arrow IPC file.")
    sp.add_argument("--set", action="append", metavar="ROW:COLUMN=VALUE", help="Set a cell from text (repeatable).")
    sp.add_argument("--null", action="append", metavar="ROW:COLUMN", help="Set a cell to null (repeatable).")
    sp.add_argument("--delete", default=None, metavar="INDICES", help="Comma-separated row indices to delete.")
    sp.add_argument("--out", default=None, help="Output path. Default: overwrite the input file.")
    sp.set_defaults(func=cmd_edit)

    sp = sub.add_parser("recent", help="List recently opened files.")
    sp.set_defaults(func=cmd_recent)

    return p


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level or get_settings().logging.level)
    try:
        args.func(args)
    except StudioError as exc:
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":
    main()
