"""Chunk store and chunk assembly.

A chunk is the CSV result of one bounded query. Chunks are cached in a
storage backend under a path derived from ``(target, partition)``; once a
chunk file exists it counts as done and is never fetched again, which is
what makes an interrupted dump resumable.

Layout inside the store:

    pages.csv                             unpartitioned target, final output
    traits.csv.predicates/<name>.csv      one chunk per predicate partition
    traits.csv                            assembled from the chunks above
    pages.csv.parts/<offset>.csv          SKIP/LIMIT windows of one chunk
"""

from __future__ import annotations

import csv
import hashlib
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

from traitdump.lib.errors import ChunkAssemblyError
from traitdump.lib.storage.base import StorageBackend, StorageResult

logger = logging.getLogger(__name__)

__all__ = [
    "ChunkKey",
    "ChunkState",
    "ChunkOutcome",
    "ChunkStore",
    "assemble_chunks",
    "partition_name",
]


def partition_name(value: str) -> str:
    """Stable file-name-safe name for a partition value.

    Derived from the value itself, so a chunk keeps its name even if the
    discovery query returns partitions in a different order next run.
    """
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class ChunkKey:
    """Identity of a chunk: output file name plus optional partition name."""

    target: str
    partition: Optional[str] = None

    @property
    def path(self) -> str:
        if self.partition is None:
            return self.target
        return f"{self.target}.predicates/{self.partition}.csv"

    def __str__(self) -> str:
        return self.path


class ChunkState(Enum):
    """Lifecycle of one chunk within a run."""

    MISSING = "missing"
    CACHED = "cached"
    FETCHED = "fetched"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkOutcome:
    """Result of fetching (or finding) one chunk.

    ``path`` is None when no file exists for the chunk: a failure, or an
    empty result that was not materialized.
    """

    state: ChunkState
    path: Optional[str] = None
    row_count: int = 0

    @classmethod
    def failed(cls) -> "ChunkOutcome":
        return cls(ChunkState.FAILED)

    @property
    def ok(self) -> bool:
        return self.state in (ChunkState.CACHED, ChunkState.FETCHED, ChunkState.EMPTY)

    @property
    def has_rows(self) -> bool:
        return self.ok and self.path is not None and self.row_count > 0

    def as_tuple(self) -> Tuple[Optional[str], int]:
        """``(path, row_count)`` with -1 as the count for failures."""
        if self.state == ChunkState.FAILED:
            return (None, -1)
        return (self.path, self.row_count)


class ChunkStore:
    """Chunk files kept in a storage backend.

    The store does not validate cached content: a file that exists is taken
    as a complete chunk.
    """

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    def state(self, path: str) -> ChunkState:
        return ChunkState.CACHED if self.storage.exists(path) else ChunkState.MISSING

    def exists(self, path: str) -> bool:
        return self.storage.exists(path)

    def row_count(self, path: str) -> int:
        """Number of data rows in a stored CSV (header excluded)."""
        records = sum(1 for _ in self._reader(path))
        return max(records - 1, 0)

    def iter_rows(self, path: str) -> Iterator[List[str]]:
        """Iterate over a stored CSV's data rows, skipping the header."""
        reader = self._reader(path)
        next(reader, None)
        yield from reader

    def write_rows(
        self,
        path: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
    ) -> StorageResult:
        """Write header plus rows as one CSV file."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(columns)
        writer.writerows(rows)
        return self.storage.write_text(path, buffer.getvalue())

    def read_bytes(self, path: str) -> bytes:
        return self.storage.read_bytes(path)

    def discard(self, path: str) -> bool:
        """Remove a chunk file or a directory of them."""
        return self.storage.delete(path)

    def _reader(self, path: str) -> Iterator[List[str]]:
        text = self.storage.read_text(path)
        return csv.reader(io.StringIO(text, newline=""))

    def __repr__(self) -> str:
        return f"ChunkStore({self.storage!r})"


def assemble_chunks(
    store: ChunkStore,
    paths: Sequence[str],
    columns: Sequence[str],
    destination: str,
) -> str:
    """Concatenate chunk files into one table.

    Writes ``columns`` as the header, then the data rows of each path in
    order. Every path must exist; filtering out failed or empty chunks is
    the caller's job.

    Raises:
        ChunkAssemblyError: If a path is missing or the write fails
    """
    for path in paths:
        if not store.exists(path):
            raise ChunkAssemblyError(f"Chunk {path} does not exist", path=path)

    def rows() -> Iterator[List[str]]:
        for path in paths:
            yield from store.iter_rows(path)

    result = store.write_rows(destination, columns, rows())
    if not result.success:
        raise ChunkAssemblyError(
            f"Could not write assembled table {destination}",
            path=destination,
            details={"error": result.error},
        )
    logger.debug("Assembled %d chunks into %s", len(paths), destination)
    return destination
