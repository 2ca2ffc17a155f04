"""Dump targets: the tables that go into a trait dump.

Each target is one CSV in the archive, produced by one query template and a
partition strategy. ``NoPartitions`` runs the query once. ``PredicatePartitions``
first asks the graph which predicate URIs occur, then runs the query once per
predicate, because a single query over all traits is too large to finish.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from traitdump.lib.chunks import ChunkKey, partition_name
from traitdump.lib.graph import GraphClient
from traitdump.lib.query import Query, QueryScope, QueryTemplate

logger = logging.getLogger(__name__)

__all__ = [
    "TargetState",
    "Partition",
    "PartitionStrategy",
    "NoPartitions",
    "PredicatePartitions",
    "DumpTarget",
    "build_targets",
    "ARCHIVE_DIRECTORY",
    "DISCOVERY_LIMIT",
]

ARCHIVE_DIRECTORY = "trait_bank"
DISCOVERY_LIMIT = 10000


class TargetState(Enum):
    """Progress of one target through a run."""

    NOT_STARTED = "not_started"
    PARTITIONING = "partitioning"
    ASSEMBLED = "assembled"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class Partition:
    """One scoping value for a target's query.

    ``value`` is None for the single partition of an unpartitioned target.
    ``index`` is the position in discovery order.
    """

    index: int
    value: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        if self.value is None:
            return None
        return partition_name(self.value)

    def __str__(self) -> str:
        return f"#{self.index} {self.value}" if self.value is not None else "(whole table)"


class PartitionStrategy(ABC):
    """How a target's query is split."""

    #: Whether an empty partition still gets a header-only chunk file
    create_empty: bool = True
    #: Whether chunks are assembled into the output (False = the chunk is the output)
    assembles: bool = False

    @abstractmethod
    def discover(self, client: GraphClient) -> Optional[List[Partition]]:
        """Return the partitions to run, or None if discovery failed."""
        ...

    def bind(self, template: QueryTemplate, partition: Partition) -> Query:
        """Build the query for one partition."""
        return template.bind()


class NoPartitions(PartitionStrategy):
    """The whole table in one chunk."""

    create_empty = True
    assembles = False

    def discover(self, client: GraphClient) -> Optional[List[Partition]]:
        return [Partition(0)]

    def __repr__(self) -> str:
        return "NoPartitions()"


class PredicatePartitions(PartitionStrategy):
    """One chunk per predicate URI found by a discovery query.

    Empty partitions are common and leave no file behind.
    """

    create_empty = False
    assembles = True

    def __init__(self, discovery: Query, placeholder: str = "predicate") -> None:
        self.discovery = discovery
        self.placeholder = placeholder

    def discover(self, client: GraphClient) -> Optional[List[Partition]]:
        rows = client.execute(self.discovery)
        if rows is None:
            return None
        return [Partition(i, row[0]) for i, row in enumerate(rows)]

    def bind(self, template: QueryTemplate, partition: Partition) -> Query:
        return template.bind(**{self.placeholder: partition.value})

    def __repr__(self) -> str:
        return f"PredicatePartitions(placeholder={self.placeholder!r})"


@dataclass
class DumpTarget:
    """One output table and its progress through a run."""

    name: str
    filename: str
    template: QueryTemplate
    strategy: PartitionStrategy = field(default_factory=NoPartitions)

    state: TargetState = TargetState.NOT_STARTED
    chunk_paths: List[str] = field(default_factory=list)
    failed: List[Partition] = field(default_factory=list)
    excluded: List[Partition] = field(default_factory=list)
    output_path: Optional[str] = None
    row_count: int = 0
    reason: Optional[str] = None

    @property
    def columns(self) -> List[str]:
        return list(self.template.columns)

    @property
    def archive_member(self) -> str:
        return f"{ARCHIVE_DIRECTORY}/{self.filename}"

    def chunk_key(self, partition: Partition) -> ChunkKey:
        return ChunkKey(self.filename, partition.name)

    def query_for(self, partition: Partition) -> Query:
        return self.strategy.bind(self.template, partition)

    def defer(self, reason: str) -> None:
        self.state = TargetState.DEFERRED
        self.reason = reason
        self.output_path = None

    def reset(self) -> None:
        self.state = TargetState.NOT_STARTED
        self.chunk_paths = []
        self.failed = []
        self.excluded = []
        self.output_path = None
        self.row_count = 0
        self.reason = None


TERMS_QUERY = """
MATCH (r:Term)
RETURN r.uri, r.name, r.type
ORDER BY r.uri"""

TERM_PARENTS_QUERY = """
MATCH (r:Term)-[:parent_term]->(parent:Term)
RETURN r.uri, parent.uri
ORDER BY r.uri, parent.uri"""

PAGES_QUERY = """
MATCH (page:Page) $closure
$page_filter
OPTIONAL MATCH (page)-[:parent]->(parent:Page)
RETURN page.page_id, parent.page_id, page.rank, page.canonical"""

INFERRED_QUERY = """
MATCH (page:Page)-[:inferred_trait]->(trait:Trait)
      $closure
RETURN page.page_id AS page_id, trait.eol_pk AS trait"""

TRAITS_QUERY = """
MATCH (t:Trait)<-[:trait]-(page:Page)
      $closure
$page_filter
MATCH (t)-[:predicate]->(predicate:Term {uri: $predicate})
OPTIONAL MATCH (t)-[:supplier]->(r:Resource)
OPTIONAL MATCH (t)-[:object_term]->(obj:Term)
OPTIONAL MATCH (t)-[:object_page]->(obj_page:Page)
OPTIONAL MATCH (t)-[:normal_units_term]->(normal_units:Term)
OPTIONAL MATCH (t)-[:units_term]->(units:Term)
RETURN t.eol_pk, page.page_id, r.resource_pk, r.resource_id,
       t.source, t.scientific_name, predicate.uri,
       obj_page.page_id, obj.uri,
       t.normal_measurement, normal_units.uri, t.normal_units,
       t.measurement, units.uri, t.units,
       t.literal,
       t.method, t.remarks, t.sample_size, t.name_en,
       t.citation"""

METADATA_QUERY = """
MATCH (m:MetaData)<-[:metadata]-(t:Trait),
      (t)<-[:trait]-(page:Page)
      $closure
$page_filter
MATCH (m)-[:predicate]->(predicate:Term {uri: $predicate})
OPTIONAL MATCH (m)-[:object_term]->(obj:Term)
OPTIONAL MATCH (m)-[:units_term]->(units:Term)
RETURN m.eol_pk, t.eol_pk, predicate.uri, obj.uri, m.measurement, units.uri, m.literal"""

TRAIT_PREDICATES_QUERY = f"""
MATCH (pred:Term)
WHERE (pred)<-[:predicate]-(:Trait)
RETURN DISTINCT pred.uri
LIMIT {DISCOVERY_LIMIT}"""

METADATA_PREDICATES_QUERY = f"""
MATCH (pred:Term)
WHERE (pred)<-[:predicate]-(:MetaData)
RETURN DISTINCT pred.uri
LIMIT {DISCOVERY_LIMIT}"""

# Column names follow the published trait bank tarball, inconsistencies included
TRAITS_COLUMNS = [
    "eol_pk", "page_id", "resource_pk", "resource_id",
    "source", "scientific_name", "predicate",
    "object_page_id", "value_uri",
    "normal_measurement", "normal_units_uri", "normal_units",
    "measurement", "units_uri", "units",
    "literal",
    "method", "remarks", "sample_size", "name_en",
    "citation",
]

METADATA_COLUMNS = [
    "eol_pk", "trait_eol_pk", "predicate", "value_uri",
    "measurement", "units_uri", "literal",
]


def build_targets(scope: Optional[QueryScope] = None) -> List[DumpTarget]:
    """The six standard targets, in the order they are dumped."""
    scope = scope or QueryScope()

    def template(text: str, columns: List[str]) -> QueryTemplate:
        return QueryTemplate(scope.apply(text).strip(), columns)

    return [
        DumpTarget(
            "terms", "terms.csv",
            template(TERMS_QUERY, ["uri", "name", "type"]),
        ),
        DumpTarget(
            "term_parents", "term_parents.csv",
            template(TERM_PARENTS_QUERY, ["uri", "parent_uri"]),
        ),
        DumpTarget(
            "pages", "pages.csv",
            template(PAGES_QUERY, ["page_id", "parent_id", "rank", "canonical"]),
        ),
        DumpTarget(
            "inferred", "inferred.csv",
            template(INFERRED_QUERY, ["page_id", "inferred_trait"]),
        ),
        DumpTarget(
            "traits", "traits.csv",
            template(TRAITS_QUERY, TRAITS_COLUMNS),
            PredicatePartitions(Query(TRAIT_PREDICATES_QUERY.strip(), ["uri"])),
        ),
        DumpTarget(
            "metadata", "metadata.csv",
            template(METADATA_QUERY, METADATA_COLUMNS),
            PredicatePartitions(Query(METADATA_PREDICATES_QUERY.strip(), ["uri"])),
        ),
    ]
