"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from traitdump.lib.chunks import ChunkStore  # noqa: E402
from traitdump.lib.graph import CallableGraphClient  # noqa: E402
from traitdump.lib.storage import LocalStorage  # noqa: E402
from traitdump.lib.throttle import ResponseThrottle  # noqa: E402

Rows = Optional[Sequence[Sequence[Any]]]
Responder = Union[Rows, Callable[[str], Rows]]


class FakeGraph:
    """Query function that answers by matching substrings of the query text.

    Routes are tried in the order they were added; the first route whose
    needles all occur in the query wins. Unmatched queries return no rows.
    A route answering None simulates a failed request.
    """

    def __init__(self) -> None:
        self.routes: List[Tuple[Tuple[str, ...], Responder]] = []
        self.calls: List[str] = []

    def on(self, *needles: str, rows: Responder) -> "FakeGraph":
        self.routes.append((needles, rows))
        return self

    def __call__(self, cypher: str) -> Optional[Dict[str, Any]]:
        self.calls.append(cypher)
        for needles, responder in self.routes:
            if all(needle in cypher for needle in needles):
                rows = responder(cypher) if callable(responder) else responder
                if rows is None:
                    return None
                return {"columns": [], "data": [list(row) for row in rows]}
        return {"columns": [], "data": []}

    def calls_matching(self, *needles: str) -> List[str]:
        return [c for c in self.calls if all(n in c for n in needles)]


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def client(fake_graph: FakeGraph) -> CallableGraphClient:
    """Query client over the fake graph, with throttling disabled."""
    return CallableGraphClient(fake_graph, throttle=ResponseThrottle(delay=0))


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def store(workdir: Path) -> ChunkStore:
    return ChunkStore(LocalStorage(str(workdir)))
