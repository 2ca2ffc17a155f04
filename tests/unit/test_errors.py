"""Tests for traitdump.lib.errors module."""

import httpx

from traitdump.lib.errors import (
    ChunkAssemblyError,
    ConfigurationError,
    DumpError,
    TransportError,
    UnsafeValueError,
)


class TestDumpError:
    """Tests for the base error."""

    def test_plain_message(self):
        assert str(DumpError("boom")) == "boom"

    def test_target_details_and_hint(self):
        exc = DumpError("no rows", target="traits", details={"chunk": "a.csv"}, suggestion="retry later")
        assert str(exc).splitlines() == ["[traits] no rows", "    chunk = a.csv", "    hint: retry later"]

    def test_to_dict(self):
        data = DumpError("boom", target="pages").to_dict()
        assert data == {
            "error": "DumpError",
            "message": "boom",
            "target": "pages",
            "details": {},
            "suggestion": None,
        }

    def test_details_are_copied(self):
        details = {"a": 1}
        exc = DumpError("boom", details=details)
        exc.details["b"] = 2
        assert details == {"a": 1}


class TestConfigurationError:
    """Tests for ConfigurationError."""

    def test_field_and_value(self):
        exc = ConfigurationError("bad chunk", field="chunk_size", value=-1)
        assert exc.field == "chunk_size"
        assert exc.details == {"field": "chunk_size", "value": "-1"}
        assert isinstance(exc, DumpError)

    def test_extra_details_kept(self):
        exc = ConfigurationError("unknown keys", details={"allowed": "clade"})
        assert exc.details == {"allowed": "clade"}


class TestTransportError:
    """Tests for TransportError."""

    def test_status_detail(self):
        exc = TransportError("HTTP response: 500", status_code=500, body="oops")
        assert exc.details == {"status": 500}
        assert exc.body == "oops"

    def test_cause_detail(self):
        exc = TransportError("failed", cause=httpx.ConnectError("refused"))
        assert exc.details["cause"] == "ConnectError: refused"

    def test_retryable(self):
        assert TransportError("x").retryable
        assert TransportError("x", status_code=503).retryable
        assert TransportError("x", status_code=429).retryable
        assert not TransportError("x", status_code=400).retryable
        assert not TransportError("x", status_code=500).retryable


class TestUnsafeValueError:
    """Tests for UnsafeValueError."""

    def test_message_and_placeholder(self):
        exc = UnsafeValueError("a'b", placeholder="predicate")
        assert exc.message == "Refusing to interpolate unsafe value \"a'b\""
        assert exc.details == {"placeholder": "predicate"}


class TestChunkAssemblyError:
    """Tests for ChunkAssemblyError."""

    def test_default_suggestion(self):
        exc = ChunkAssemblyError("missing", path="a.csv")
        assert exc.path == "a.csv"
        assert exc.suggestion == "Only pass chunks whose fetch succeeded with rows."

    def test_suggestion_override(self):
        assert ChunkAssemblyError("missing", suggestion="rerun").suggestion == "rerun"
