"""Trait dump orchestration.

A ``TraitsDumper`` is a session for producing one ZIP archive. Its durable
state lives in the chunk store, not in the object: rerunning a dump against
the same working directory re-uses every chunk a previous run finished.

Each target goes NOT_STARTED -> PARTITIONING -> ASSEMBLED or DEFERRED. A
target is deferred when any of its partitions failed to fetch; deferral
affects that target only, and the archive is written with whatever was
assembled.

Example:
    client = HttpGraphClient("https://eol.org/", AuthConfig(token=token))
    result = TraitsDumper.dump(client, "felidae.zip", clade=7674, chunk_size=20000)
    if not result.complete:
        print("rerun later for:", ", ".join(result.deferred))
"""

from __future__ import annotations

import logging
import os
import time
import zipfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from traitdump.lib.chunks import ChunkState, ChunkStore, assemble_chunks
from traitdump.lib.errors import ChunkAssemblyError
from traitdump.lib.graph import GraphClient
from traitdump.lib.paginator import Paginator
from traitdump.lib.query import QueryScope, is_safe_value
from traitdump.lib.storage import LocalStorage, StorageBackend, get_storage
from traitdump.lib.targets import (
    ARCHIVE_DIRECTORY,
    DumpTarget,
    Partition,
    TargetState,
    build_targets,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DumpResult",
    "TraitsDumper",
    "default_stem",
    "resolve_destination",
    "PROGRESS_EVERY",
]

PROGRESS_EVERY = 25


def default_stem(clade: Optional[int] = None, now: Optional[datetime] = None) -> str:
    """Name tag unique to the clade and calendar month, e.g. ``traits_7674_202510``."""
    month = (now or datetime.now()).strftime("%Y%m")
    tag = clade if clade is not None else "all"
    return f"traits_{tag}_{month}"


def resolve_destination(
    dest: Optional[Union[str, Path]],
    clade: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Path:
    """Archive path for ``dest``; a directory (or None) gets the default file name."""
    path = Path(dest) if dest else Path(".")
    if path.is_dir():
        path = path / f"{default_stem(clade, now)}.zip"
    return path


@dataclass
class DumpResult:
    """Summary of one dump run."""

    archive_path: Optional[str]
    assembled: List[str] = field(default_factory=list)
    deferred: Dict[str, str] = field(default_factory=dict)
    row_counts: Dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @property
    def complete(self) -> bool:
        return not self.deferred

    def to_dict(self) -> Dict[str, Any]:
        return {
            "archive_path": self.archive_path,
            "assembled": self.assembled,
            "deferred": self.deferred,
            "row_counts": self.row_counts,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "complete": self.complete,
        }


class TraitsDumper:
    """Runs dump targets through the paginator and packages the results."""

    def __init__(
        self,
        client: GraphClient,
        store: ChunkStore,
        *,
        scope: Optional[QueryScope] = None,
        chunk_size: Optional[int] = None,
        targets: Optional[List[DumpTarget]] = None,
    ) -> None:
        """Initialize the dumper.

        Args:
            client: Query client
            store: Chunk store; reuse the same one across runs to resume
            scope: Clade and page filters applied to page-anchored queries
            chunk_size: SKIP/LIMIT window size (None = one query per chunk)
            targets: Targets to dump (default: the six standard tables)
        """
        self.client = client
        self.store = store
        self.scope = scope or QueryScope()
        self.paginator = Paginator(client, store, chunk_size=chunk_size)
        self.targets = targets if targets is not None else build_targets(self.scope)

    @classmethod
    def dump(
        cls,
        client: GraphClient,
        dest: Optional[Union[str, Path]] = None,
        *,
        clade: Optional[int] = None,
        chunk_size: Optional[int] = None,
        workdir: Optional[str] = None,
        storage: Optional[StorageBackend] = None,
        scope: Optional[QueryScope] = None,
    ) -> DumpResult:
        """Dump everything to an archive in one call.

        The working directory defaults to ``traits_<clade|all>_<YYYYMM>``
        next to the archive, so reruns within a month resume.
        """
        scope = scope or QueryScope(clade=clade)
        archive = resolve_destination(dest, scope.clade)
        if storage is None:
            if workdir is None:
                workdir = str(archive.parent / default_stem(scope.clade))
            storage = get_storage(workdir)
        dumper = cls(client, ChunkStore(storage), scope=scope, chunk_size=chunk_size)
        return dumper.dump_traits(archive)

    def dump_traits(self, dest: Union[str, Path]) -> DumpResult:
        """Run every target and write the archive."""
        started = time.monotonic()
        logger.info("Dumping %d tables into %s (scope: %s)", len(self.targets), dest, self.scope.tag)

        for target in self.targets:
            self.run_target(target)

        archive = self.write_archive(dest)

        result = DumpResult(archive_path=str(archive))
        for target in self.targets:
            if target.state == TargetState.ASSEMBLED:
                result.assembled.append(target.name)
                result.row_counts[target.name] = target.row_count
            else:
                result.deferred[target.name] = target.reason or "not produced"
        result.elapsed_seconds = time.monotonic() - started

        logger.info(
            "Done in %.1fs: %d tables archived, %d deferred",
            result.elapsed_seconds,
            len(result.assembled),
            len(result.deferred),
        )
        return result

    def run_target(self, target: DumpTarget) -> DumpTarget:
        """Fetch, validate and assemble one target."""
        target.reset()
        target.state = TargetState.PARTITIONING
        strategy = target.strategy

        partitions = strategy.discover(self.client)
        if partitions is None:
            target.defer("partition discovery query failed")
            logger.warning(
                "** Deferred due to failed partition discovery: %s", target.filename, extra={"target": target.name}
            )
            return target
        if strategy.assembles:
            logger.info("%s: %d predicate URIs", target.filename, len(partitions))

        partitions = self.filter_partitions(target, partitions)

        for partition in partitions:
            if strategy.assembles and partition.index % PROGRESS_EVERY == 0:
                logger.info("%s: predicate %d = %s", target.name, partition.index, partition.value)

            outcome = self.paginator.fetch_chunk(
                target.query_for(partition),
                target.chunk_key(partition).path,
                create_empty=strategy.create_empty,
            )
            if outcome.state == ChunkState.FAILED:
                target.failed.append(partition)
                continue
            if outcome.path is not None and (outcome.row_count > 0 or not strategy.assembles):
                target.chunk_paths.append(outcome.path)
                target.row_count += outcome.row_count

        if target.failed:
            first = target.failed[0]
            reason = f"{len(target.failed)} of {len(partitions)} partition(s) failed"
            if first.value is not None:
                reason += f", first: {first}"
            target.defer(reason)
            logger.warning(
                "** Deferred due to failed queries: %s (%s)", target.filename, reason, extra={"target": target.name}
            )
            return target

        if strategy.assembles:
            try:
                output = assemble_chunks(self.store, target.chunk_paths, target.columns, target.filename)
            except ChunkAssemblyError as exc:
                target.defer(f"assembly failed: {exc.message}")
                logger.error(
                    "** Deferred due to assembly failure: %s: %s", target.filename, exc, extra={"target": target.name}
                )
                return target
        else:
            output = target.chunk_paths[0]

        target.state = TargetState.ASSEMBLED
        target.output_path = output
        logger.info("%s: %d rows", target.filename, target.row_count)
        return target

    def filter_partitions(self, target: DumpTarget, partitions: List[Partition]) -> List[Partition]:
        """Drop partitions whose value fails the query allow-list.

        Dropped partitions narrow the target; they never defer it.
        """
        kept: List[Partition] = []
        for partition in partitions:
            if partition.value is None and not target.strategy.assembles:
                kept.append(partition)
            elif is_safe_value(partition.value):
                kept.append(partition)
            else:
                logger.warning("** Unsafe partition value for %s: %r", target.filename, partition.value)
                target.excluded.append(partition)
        if target.excluded:
            logger.warning(
                "%s: %d partition(s) excluded; table will omit their rows",
                target.filename,
                len(target.excluded),
            )
        return kept

    def write_archive(self, dest: Union[str, Path]) -> Path:
        """Write every assembled target into the ZIP at ``dest``.

        The archive is built next to ``dest`` and renamed into place, which
        replaces any previous archive.
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(f".{dest.name}.tmp")

        storage = self.store.storage
        with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(f"{ARCHIVE_DIRECTORY}/", "")
            for target in self.targets:
                if target.state != TargetState.ASSEMBLED or target.output_path is None:
                    logger.warning("** %s not stored: %s", target.filename, target.reason or "not produced")
                    continue
                logger.info("Storing %s into zip file", target.filename)
                if isinstance(storage, LocalStorage):
                    archive.write(storage.local_path(target.output_path), target.archive_member)
                else:
                    archive.writestr(target.archive_member, self.store.read_bytes(target.output_path))

        os.replace(tmp, dest)
        logger.info("Wrote traits to %s", dest)
        return dest
