"""Pagination and chunk caching.

``Paginator.fetch_chunk`` runs one query and stores its result as a chunk
file, unless the file is already there. With a chunk size, the query is
split into SKIP/LIMIT windows, each cached as its own part file, then the
parts are assembled into the chunk. Either way a later run skips every file
that already exists, so an interrupted dump picks up where it stopped.

Example:
    paginator = Paginator(client, ChunkStore(LocalStorage("./work")))
    outcome = paginator.fetch_chunk(query, "pages.csv")
    if outcome.state is ChunkState.FAILED:
        ...  # retry on a later run
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from traitdump.lib.chunks import ChunkOutcome, ChunkState, ChunkStore, assemble_chunks
from traitdump.lib.errors import ChunkAssemblyError
from traitdump.lib.graph import GraphClient
from traitdump.lib.query import Query

logger = logging.getLogger(__name__)

__all__ = [
    "PaginationStrategy",
    "PaginationConfig",
    "PaginationState",
    "SingleQueryState",
    "OffsetPaginationState",
    "build_pagination_state",
    "Paginator",
]


class PaginationStrategy(Enum):
    """How one chunk's query is split."""

    NONE = "none"
    OFFSET = "offset"


@dataclass
class PaginationConfig:
    """Configuration for splitting a chunk query.

    Examples:
        # One query per chunk
        config = PaginationConfig()

        # SKIP/LIMIT windows of 20000 rows
        config = PaginationConfig(strategy=PaginationStrategy.OFFSET, page_size=20000)
    """

    strategy: PaginationStrategy = PaginationStrategy.NONE
    page_size: int = 0


class PaginationState(ABC):
    """Tracks progress through the windows of one chunk query."""

    def __init__(self, config: PaginationConfig) -> None:
        self.config = config

    @abstractmethod
    def should_fetch_more(self) -> bool:
        ...

    @abstractmethod
    def next_window(self) -> Optional[Tuple[int, int]]:
        """Return ``(offset, limit)`` for the next request, or None for no window."""
        ...

    @abstractmethod
    def on_response(self, row_count: int) -> bool:
        """Record a window's size; return True if another window is needed."""
        ...

    @abstractmethod
    def describe(self) -> str:
        ...


class SingleQueryState(PaginationState):
    """One unwindowed request."""

    def __init__(self, config: PaginationConfig) -> None:
        super().__init__(config)
        self._fetched = False

    def should_fetch_more(self) -> bool:
        return not self._fetched

    def next_window(self) -> Optional[Tuple[int, int]]:
        return None

    def on_response(self, row_count: int) -> bool:
        self._fetched = True
        return False

    def describe(self) -> str:
        return "(no pagination)"


class OffsetPaginationState(PaginationState):
    """SKIP/LIMIT windows, stopping at the first short window.

        ... SKIP 0 LIMIT 20000
        ... SKIP 20000 LIMIT 20000
        ...
    """

    def __init__(self, config: PaginationConfig) -> None:
        if config.page_size <= 0:
            raise ValueError("Offset pagination requires page_size > 0")
        super().__init__(config)
        self.offset = 0
        self._last_offset = 0
        self._done = False

    def should_fetch_more(self) -> bool:
        return not self._done

    def next_window(self) -> Tuple[int, int]:
        self._last_offset = self.offset
        return (self.offset, self.config.page_size)

    def on_response(self, row_count: int) -> bool:
        if row_count < self.config.page_size:
            self._done = True
            return False
        self.offset += self.config.page_size
        return True

    def describe(self) -> str:
        return f"at offset {self._last_offset}"


def build_pagination_state(chunk_size: Optional[int]) -> PaginationState:
    """Create the pagination state for a chunk size hint (None or 0 = unwindowed)."""
    if chunk_size:
        return OffsetPaginationState(
            PaginationConfig(strategy=PaginationStrategy.OFFSET, page_size=chunk_size)
        )
    return SingleQueryState(PaginationConfig())


class Paginator:
    """Runs queries into cached chunk files."""

    def __init__(
        self,
        client: GraphClient,
        store: ChunkStore,
        chunk_size: Optional[int] = None,
    ) -> None:
        """Initialize the paginator.

        Args:
            client: Query client used on cache misses
            store: Where chunk files live
            chunk_size: Default SKIP/LIMIT window size (None = one query per chunk)
        """
        if chunk_size is not None and chunk_size < 0:
            raise ValueError("chunk_size must be >= 0")
        self.client = client
        self.store = store
        self.chunk_size = chunk_size

    def fetch_chunk(
        self,
        query: Query,
        destination: str,
        *,
        create_empty: bool = True,
        chunk_size: Optional[int] = None,
    ) -> ChunkOutcome:
        """Produce the chunk file for ``query`` at ``destination``.

        Args:
            query: Query whose columns become the CSV header
            destination: Chunk path inside the store
            create_empty: Write a header-only file for an empty result
            chunk_size: Window size for this call (default: the paginator's)

        Returns:
            CACHED if the file already existed (no query is run), FETCHED
            with rows, EMPTY for zero rows (path is None unless
            create_empty), FAILED if the endpoint did not answer.
        """
        if self.store.exists(destination):
            count = self.store.row_count(destination)
            logger.debug("Using cached %s (%d rows)", destination, count)
            return ChunkOutcome(ChunkState.CACHED, destination, count)

        size = self.chunk_size if chunk_size is None else chunk_size
        state = build_pagination_state(size)
        if isinstance(state, OffsetPaginationState):
            return self._fetch_windows(query, destination, state, create_empty)

        rows = self.client.execute(query)
        if rows is None:
            return ChunkOutcome.failed()
        return self._materialize(destination, query.columns, rows, create_empty)

    def _materialize(
        self,
        path: str,
        columns: Sequence[str],
        rows: List[Sequence[Any]],
        create_empty: bool,
    ) -> ChunkOutcome:
        if not rows and not create_empty:
            return ChunkOutcome(ChunkState.EMPTY)
        result = self.store.write_rows(path, columns, rows)
        if not result.success:
            return ChunkOutcome.failed()
        state = ChunkState.FETCHED if rows else ChunkState.EMPTY
        return ChunkOutcome(state, path, len(rows))

    def _fetch_windows(
        self,
        query: Query,
        destination: str,
        state: OffsetPaginationState,
        create_empty: bool,
    ) -> ChunkOutcome:
        """Fetch SKIP/LIMIT windows as part files, then assemble them.

        Every window, even an empty last one, is kept as a part file until
        the chunk is assembled, so a resumed run does not repeat it.
        """
        parts_dir = f"{destination}.parts"
        parts: List[str] = []
        total = 0

        while state.should_fetch_more():
            offset, limit = state.next_window()
            part_path = f"{parts_dir}/{offset}.csv"

            if self.store.exists(part_path):
                count = self.store.row_count(part_path)
            else:
                rows = self.client.execute(query.window(offset, limit))
                if rows is None:
                    logger.warning("Window %s of %s failed", state.describe(), destination)
                    return ChunkOutcome.failed()
                result = self.store.write_rows(part_path, query.columns, rows)
                if not result.success:
                    return ChunkOutcome.failed()
                count = len(rows)

            parts.append(part_path)
            total += count
            logger.debug("%s: %d rows %s (total %d)", destination, count, state.describe(), total)
            state.on_response(count)

        if total == 0 and not create_empty:
            # An empty chunk leaves nothing behind, parts included
            self.store.discard(parts_dir)
            return ChunkOutcome(ChunkState.EMPTY)

        try:
            assemble_chunks(self.store, parts, query.columns, destination)
        except ChunkAssemblyError as exc:
            logger.error("Could not assemble %s: %s", destination, exc)
            return ChunkOutcome.failed()

        # The assembled chunk is now the cache entry
        self.store.discard(parts_dir)
        logger.info("%s: %d rows in %d windows", destination, total, len(parts))
        state_tag = ChunkState.FETCHED if total else ChunkState.EMPTY
        return ChunkOutcome(state_tag, destination, total)
