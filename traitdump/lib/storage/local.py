"""Local filesystem backend for the chunk cache."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from traitdump.lib.storage.base import StorageBackend, StorageResult

logger = logging.getLogger(__name__)

__all__ = ["LocalStorage"]


class LocalStorage(StorageBackend):
    """Chunk files in a local directory.

    Example:
        >>> storage = LocalStorage("./traits_all_202510/")
        >>> storage.exists("pages.csv")
        True
    """

    @property
    def scheme(self) -> str:
        return "local"

    def local_path(self, path: str) -> Path:
        """Absolute filesystem path for a relative storage path."""
        return Path(self.get_full_path(path)).resolve()

    def exists(self, path: str) -> bool:
        return self.local_path(path).is_file()

    def read_bytes(self, path: str) -> bytes:
        return self.local_path(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> StorageResult:
        """Write to a temporary file beside the target, then rename it over the target."""
        target = self.local_path(path)
        tmp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, target)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Failed to write %s: %s", target, e)
            return StorageResult(success=False, path=str(target), error=str(e))

        return StorageResult(success=True, path=str(target), bytes_written=len(data))

    def delete(self, path: str) -> bool:
        target = self.local_path(path)
        try:
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
            else:
                return False
        except OSError as e:
            logger.error("Failed to delete %s: %s", target, e)
            return False
        return True
