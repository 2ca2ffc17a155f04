"""Cypher query construction.

Queries are immutable text plus the ordered column names the caller expects
back. Values that come from outside the dump (predicate URIs discovered in
the graph) only reach query text through ``QueryTemplate.bind``, which
checks them against a character allow-list first.

Example:
    template = QueryTemplate(
        "MATCH (t:Trait)-[:predicate]->(p:Term {uri: $predicate}) RETURN t.eol_pk",
        ["eol_pk"],
    )
    query = template.bind(predicate="http://purl.obolibrary.org/obo/VT_0001259")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from string import Template
from typing import Any, Iterable, Optional, Tuple

from traitdump.lib.errors import ConfigurationError, UnsafeValueError

logger = logging.getLogger(__name__)

__all__ = [
    "Query",
    "QueryTemplate",
    "QueryScope",
    "SAFE_VALUE_PATTERN",
    "is_safe_value",
]

# Letters, digits and : # _ = ? & space / . -
SAFE_VALUE_PATTERN = re.compile(r"[\w:#=?& /.\-]*")


def is_safe_value(value: Any) -> bool:
    """Check a value against the interpolation allow-list."""
    if not isinstance(value, str):
        return False
    return SAFE_VALUE_PATTERN.fullmatch(value) is not None


@dataclass(frozen=True)
class Query:
    """Query text plus the ordered columns it returns."""

    text: str
    columns: Tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))

    def window(self, offset: int, limit: int) -> "Query":
        """Return the same query restricted to one SKIP/LIMIT window."""
        if offset < 0 or limit <= 0:
            raise ValueError(f"Invalid window offset={offset} limit={limit}")
        return Query(f"{self.text.rstrip()}\nSKIP {offset} LIMIT {limit}", self.columns)


class QueryTemplate:
    """Query text with ``$name`` placeholders for runtime values.

    Strings are validated with ``is_safe_value`` and single-quoted; integers
    are inserted as digits. Anything else is rejected.
    """

    def __init__(self, text: str, columns: Iterable[str]) -> None:
        self.template = Template(text)
        self.columns = tuple(columns)

    def bind(self, **values: Any) -> Query:
        """Interpolate validated values and return the finished query.

        Raises:
            UnsafeValueError: If a value fails the allow-list
            KeyError: If a placeholder has no value
        """
        rendered = {name: self._render(name, value) for name, value in values.items()}
        return Query(self.template.substitute(rendered), self.columns)

    @staticmethod
    def _render(name: str, value: Any) -> str:
        if isinstance(value, bool):
            raise UnsafeValueError(value, placeholder=name)
        if isinstance(value, int):
            return str(value)
        if not is_safe_value(value):
            raise UnsafeValueError(value, placeholder=name)
        return f"'{value}'"

    def __repr__(self) -> str:
        return f"QueryTemplate(columns={list(self.columns)!r})"


@dataclass(frozen=True)
class QueryScope:
    """Restriction of page-anchored queries.

    With a clade, only pages in that subtree are dumped. Without one, pages
    are limited to those that have a parent, either through an extra MATCH
    pattern or a WHERE clause.
    """

    clade: Optional[int] = None
    filter_by_parent: bool = True
    parent_via_match: bool = True
    filter_by_canonical: bool = False

    def __post_init__(self) -> None:
        if self.clade is None:
            return
        try:
            clade = int(self.clade)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "Clade must be an integer page id", field="clade", value=self.clade
            ) from exc
        object.__setattr__(self, "clade", clade)

    def closure_clause(self) -> str:
        """MATCH fragment linking ``page`` to the clade root."""
        if self.clade is not None:
            return f", (page)-[:parent*]->(:Page {{page_id: {self.clade}}}) "
        if self.filter_by_parent and self.parent_via_match:
            return ", (page)-[:parent]->() "
        return ""

    def page_filter(self) -> str:
        """WHERE clause for ``page``, or an empty string."""
        clauses = []
        if self.filter_by_canonical:
            clauses.append("page.canonical IS NOT NULL")
        if self.filter_by_parent and not self.parent_via_match:
            clauses.append("(page)-[:parent]->()")
        if clauses:
            return f" WHERE {' AND '.join(clauses)} "
        return ""

    def apply(self, text: str) -> str:
        """Fill ``$closure`` and ``$page_filter`` in query text.

        Other placeholders are left for ``QueryTemplate.bind``.
        """
        return Template(text).safe_substitute(
            closure=self.closure_clause(),
            page_filter=self.page_filter(),
        )

    @property
    def tag(self) -> str:
        return str(self.clade) if self.clade is not None else "all"
