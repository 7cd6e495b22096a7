"""Local file storage (path <-> bytes).

Writes are all-or-nothing: bytes go to a temporary sibling file which then
replaces the target with ``os.replace``. A failed or interrupted save leaves
the previous file untouched.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from contracts.errors import StorageError


class LocalFileStorage:
    """Filesystem implementation of :class:`contracts.interfaces.StorageProtocol`."""

    def read(self, path: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise StorageError(f"Cannot read {path}: {exc}") from exc

    def write(self, path: str, data: bytes) -> None:
        target = Path(path)
        tmp_name: str | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
