"""Recently opened files, persisted between runs.

A tiny JSON document next to the user's other settings:

    {"recent": ["/data/a.parquet", "/data/b.parquet"], "updated_at": "..."}

Most recent first, de-duplicated, capped at ``max_entries``. A missing or
corrupt file reads as empty; the store never blocks opening a table.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, List

from contracts.errors import StorageError
from contracts.interfaces import StorageProtocol
from infra.logging_config import StructuredLogger
from pipeline.storage import LocalFileStorage

logger = StructuredLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass
class RecentFiles:
    state_file: str
    max_entries: int = 10
    storage: StorageProtocol | None = None

    def _storage(self) -> StorageProtocol:
        return self.storage or LocalFileStorage()

    def list(self) -> List[str]:
        if not Path(self.state_file).exists():
            return []
        try:
            payload: Any = json.loads(self._storage().read(self.state_file).decode("utf-8"))
        except (StorageError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("recent_files_unreadable", state_file=self.state_file, error=str(exc))
            return []
        items = payload.get("recent") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            return []
        return [str(p) for p in items if str(p).strip()][: self.max_entries]

    def last(self) -> str | None:
        items = self.list()
        return items[0] if items else None

    def remember(self, path: str) -> List[str]:
        resolved = str(Path(path).expanduser().resolve())
        items = [resolved] + [p for p in self.list() if p != resolved]
        return self._save(items[: self.max_entries])

    def forget(self, path: str) -> List[str]:
        resolved = str(Path(path).expanduser().resolve())
        return self._save([p for p in self.list() if p != resolved])

    def _save(self, items: List[str]) -> List[str]:
        payload = {"recent": items, "updated_at": _utc_now_iso()}
        data = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
        try:
            self._storage().write(self.state_file, data)
        except StorageError as exc:
            # Not fatal: the table is already open
            logger.warning("recent_files_write_failed", state_file=self.state_file, error=str(exc))
        return items
