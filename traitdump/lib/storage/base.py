"""Storage interface for the chunk cache.

A backend holds chunk files under a base location. Paths handed to a backend
are relative to that location and use ``/`` separators, e.g.
``traits.csv.predicates/3f1c0e9a2b7d4c55.csv``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

__all__ = ["StorageBackend", "StorageResult"]


@dataclass
class StorageResult:
    """Outcome of a write."""

    success: bool
    path: str
    bytes_written: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "path": self.path,
            "bytes_written": self.bytes_written,
            "error": self.error,
        }


class StorageBackend(ABC):
    """Where chunk files live.

    Writes are all-or-nothing: a reader never sees a partially written file
    under its final name. The chunk store treats a file's existence as proof
    that the chunk is complete, so a backend that cannot guarantee this must
    not be used for the cache.
    """

    def __init__(self, base_path: str, **options: Any) -> None:
        self.base_path = base_path
        self.options = options

    @property
    @abstractmethod
    def scheme(self) -> str:
        """URI scheme of the backend ('local' or 's3')."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """True if a regular file is stored at ``path``."""

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        ...

    @abstractmethod
    def write_bytes(self, path: str, data: bytes) -> StorageResult:
        """Store ``data`` at ``path`` atomically, replacing any existing file."""

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Remove a file, or a directory and everything under it.

        Returns:
            False if nothing was there or the removal failed
        """

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        return self.read_bytes(path).decode(encoding)

    def write_text(self, path: str, data: str, encoding: str = "utf-8") -> StorageResult:
        return self.write_bytes(path, data.encode(encoding))

    def get_full_path(self, path: str) -> str:
        """Join ``path`` onto the base location (absolute paths pass through)."""
        if not path:
            return self.base_path
        if path.startswith(("s3://", "/")):
            return path
        return f"{self.base_path.rstrip('/')}/{path.lstrip('/')}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.base_path!r})"
