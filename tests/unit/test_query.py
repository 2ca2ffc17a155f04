"""Tests for query construction and the interpolation allow-list."""

import pytest

from traitdump.lib.errors import ConfigurationError, UnsafeValueError
from traitdump.lib.query import Query, QueryScope, QueryTemplate, is_safe_value


class TestIsSafeValue:
    """Tests for the allow-list check."""

    @pytest.mark.parametrize(
        "value",
        [
            "http://purl.obolibrary.org/obo/VT_0001259",
            "http://eol.org/schema/terms/Habitat",
            "https://example.org/a?b=c&d=e#frag",
            "plain words with spaces",
            "http://example.org/térm",
            "",
        ],
    )
    def test_accepts_uri_characters(self, value):
        assert is_safe_value(value) is True

    @pytest.mark.parametrize(
        "value",
        [
            "http://example.org/x'}) DETACH DELETE (n",
            'http://example.org/"quoted"',
            "http://example.org/a;b",
            "http://example.org/{brace}",
            "http://example.org/a\nb",
            "http://example.org/a\\b",
        ],
    )
    def test_rejects_injection_characters(self, value):
        assert is_safe_value(value) is False

    def test_rejects_non_strings(self):
        assert is_safe_value(None) is False
        assert is_safe_value(42) is False


class TestQuery:
    """Tests for the Query value type."""

    def test_columns_stored_as_tuple(self):
        query = Query("MATCH (n) RETURN n.a, n.b", ["a", "b"])
        assert query.columns == ("a", "b")

    def test_is_immutable(self):
        query = Query("RETURN 1", ["x"])
        with pytest.raises(AttributeError):
            query.text = "RETURN 2"

    def test_window_appends_skip_limit(self):
        query = Query("MATCH (n) RETURN n.a", ["a"])
        windowed = query.window(200, 100)
        assert windowed.text.endswith("SKIP 200 LIMIT 100")
        assert windowed.columns == query.columns

    def test_window_rejects_bad_bounds(self):
        query = Query("RETURN 1", ["x"])
        with pytest.raises(ValueError):
            query.window(-1, 10)
        with pytest.raises(ValueError):
            query.window(0, 0)


class TestQueryTemplate:
    """Tests for QueryTemplate.bind()."""

    def test_binds_quoted_string(self):
        template = QueryTemplate("MATCH (p:Term {uri: $predicate}) RETURN p.uri", ["uri"])
        query = template.bind(predicate="http://example.org/a")
        assert query.text == "MATCH (p:Term {uri: 'http://example.org/a'}) RETURN p.uri"
        assert query.columns == ("uri",)

    def test_binds_integer_unquoted(self):
        template = QueryTemplate("MATCH (p:Page {page_id: $id}) RETURN p", ["p"])
        assert "{page_id: 7674}" in template.bind(id=7674).text

    def test_unsafe_value_rejected_before_interpolation(self):
        template = QueryTemplate("MATCH (p:Term {uri: $predicate}) RETURN p", ["p"])
        with pytest.raises(UnsafeValueError) as excinfo:
            template.bind(predicate="x'}) MATCH (n) DETACH DELETE n //")
        assert excinfo.value.placeholder == "predicate"

    def test_none_and_bool_rejected(self):
        template = QueryTemplate("RETURN $v", ["v"])
        with pytest.raises(UnsafeValueError):
            template.bind(v=None)
        with pytest.raises(UnsafeValueError):
            template.bind(v=True)

    def test_missing_placeholder_raises(self):
        template = QueryTemplate("RETURN $v", ["v"])
        with pytest.raises(KeyError):
            template.bind()

    def test_no_placeholders(self):
        template = QueryTemplate("MATCH (r:Term) RETURN r.uri", ["uri"])
        assert template.bind().text == "MATCH (r:Term) RETURN r.uri"


class TestQueryScope:
    """Tests for clade and page filtering clauses."""

    def test_clade_closure(self):
        scope = QueryScope(clade=7674)
        assert scope.closure_clause() == ", (page)-[:parent*]->(:Page {page_id: 7674}) "
        assert scope.tag == "7674"

    def test_clade_string_coerced(self):
        assert QueryScope(clade="7674").clade == 7674

    def test_clade_must_be_integer(self):
        with pytest.raises(ConfigurationError):
            QueryScope(clade="7674}) MATCH (n")

    def test_default_requires_parent_via_match(self):
        scope = QueryScope()
        assert scope.closure_clause() == ", (page)-[:parent]->() "
        assert scope.page_filter() == ""
        assert scope.tag == "all"

    def test_parent_filter_via_where(self):
        scope = QueryScope(parent_via_match=False)
        assert scope.closure_clause() == ""
        assert scope.page_filter() == " WHERE (page)-[:parent]->() "

    def test_canonical_filter(self):
        scope = QueryScope(filter_by_canonical=True, parent_via_match=False)
        assert scope.page_filter() == " WHERE page.canonical IS NOT NULL AND (page)-[:parent]->() "

    def test_no_filters(self):
        scope = QueryScope(filter_by_parent=False)
        assert scope.closure_clause() == ""
        assert scope.page_filter() == ""

    def test_apply_leaves_runtime_placeholders(self):
        scope = QueryScope(clade=1)
        text = scope.apply("MATCH (page:Page) $closure $page_filter WHERE x = $predicate")
        assert "$predicate" in text
        assert "$closure" not in text
        assert "{page_id: 1}" in text
