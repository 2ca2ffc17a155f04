"""Tests for the chunk store and chunk assembly."""

import pytest

from traitdump.lib.chunks import (
    ChunkKey,
    ChunkOutcome,
    ChunkState,
    ChunkStore,
    assemble_chunks,
    partition_name,
)
from traitdump.lib.errors import ChunkAssemblyError
from traitdump.lib.storage.base import StorageResult


class TestChunkKey:
    """Tests for chunk path derivation."""

    def test_unpartitioned_path_is_target(self):
        assert ChunkKey("pages.csv").path == "pages.csv"

    def test_partitioned_path(self):
        key = ChunkKey("traits.csv", "0123456789abcdef")
        assert key.path == "traits.csv.predicates/0123456789abcdef.csv"

    def test_partition_name_is_stable(self):
        uri = "http://purl.obolibrary.org/obo/VT_0001259"
        assert partition_name(uri) == partition_name(uri)
        assert len(partition_name(uri)) == 16
        assert partition_name(uri) != partition_name(uri + "x")


class TestChunkOutcome:
    """Tests for ChunkOutcome."""

    def test_failed_tuple(self):
        assert ChunkOutcome.failed().as_tuple() == (None, -1)
        assert ChunkOutcome.failed().ok is False

    def test_empty_without_file(self):
        outcome = ChunkOutcome(ChunkState.EMPTY)
        assert outcome.as_tuple() == (None, 0)
        assert outcome.ok is True
        assert outcome.has_rows is False

    def test_fetched(self):
        outcome = ChunkOutcome(ChunkState.FETCHED, "pages.csv", 3)
        assert outcome.as_tuple() == ("pages.csv", 3)
        assert outcome.has_rows is True


class TestChunkStore:
    """Tests for ChunkStore reads and writes."""

    def test_write_and_count(self, store, workdir):
        result = store.write_rows("pages.csv", ["page_id", "parent_id"], [(1, 2), (3, None)])

        assert result.success
        assert (workdir / "pages.csv").read_text() == "page_id,parent_id\n1,2\n3,\n"
        assert store.row_count("pages.csv") == 2

    def test_header_only_counts_zero(self, store):
        store.write_rows("empty.csv", ["uri"], [])
        assert store.row_count("empty.csv") == 0

    def test_quoted_newlines_count_as_one_row(self, store):
        store.write_rows("t.csv", ["eol_pk", "remarks"], [("R1", "line one\nline two"), ("R2", "ok")])
        assert store.row_count("t.csv") == 2
        assert list(store.iter_rows("t.csv")) == [["R1", "line one\nline two"], ["R2", "ok"]]

    def test_state(self, store):
        assert store.state("pages.csv") == ChunkState.MISSING
        store.write_rows("pages.csv", ["page_id"], [(1,)])
        assert store.state("pages.csv") == ChunkState.CACHED

    def test_nested_paths_created(self, store, workdir):
        store.write_rows("traits.csv.predicates/abc.csv", ["eol_pk"], [("R1",)])
        assert (workdir / "traits.csv.predicates" / "abc.csv").is_file()

    def test_discard(self, store):
        store.write_rows("pages.csv.parts/0.csv", ["page_id"], [(1,)])
        assert store.discard("pages.csv.parts") is True
        assert store.state("pages.csv.parts/0.csv") == ChunkState.MISSING


class TestAssembleChunks:
    """Tests for assemble_chunks()."""

    def test_header_once_then_rows_in_order(self, store, workdir):
        store.write_rows("a.csv", ["eol_pk", "page_id"], [("r1", 1)])
        store.write_rows("b.csv", ["eol_pk", "page_id"], [("r2", 2), ("r3", 3)])

        output = assemble_chunks(store, ["a.csv", "b.csv"], ["eol_pk", "page_id"], "traits.csv")

        assert output == "traits.csv"
        lines = (workdir / "traits.csv").read_text().splitlines()
        assert lines == ["eol_pk,page_id", "r1,1", "r2,2", "r3,3"]

    def test_no_chunks_gives_header_only(self, store, workdir):
        assemble_chunks(store, [], ["eol_pk"], "traits.csv")
        assert (workdir / "traits.csv").read_text() == "eol_pk\n"

    def test_missing_chunk_raises(self, store):
        store.write_rows("a.csv", ["eol_pk"], [("r1",)])

        with pytest.raises(ChunkAssemblyError) as excinfo:
            assemble_chunks(store, ["a.csv", "missing.csv"], ["eol_pk"], "traits.csv")

        assert excinfo.value.path == "missing.csv"
        assert not store.exists("traits.csv")

    def test_write_failure_raises(self, store, monkeypatch):
        store.write_rows("a.csv", ["eol_pk"], [("r1",)])
        monkeypatch.setattr(
            store,
            "write_rows",
            lambda path, columns, rows: StorageResult(success=False, path=path, error="disk full"),
        )

        with pytest.raises(ChunkAssemblyError) as excinfo:
            assemble_chunks(store, ["a.csv"], ["eol_pk"], "traits.csv")

        assert excinfo.value.details["error"] == "disk full"
