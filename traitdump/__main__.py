"""CLI entry point for trait dumps.

Usage:
    python -m traitdump --token-file api.token --dest felidae.zip --clade 7674
    python -m traitdump --config dump.yaml --chunk-size 20000
    python -m traitdump --clade 7674 --explain

The same settings can come from environment variables:
    ID=7674 CHUNK=20000 TOKEN=`cat api.token` ZIP=felidae.zip python -m traitdump

Rerunning with the same working directory resumes: chunks already on disk
are not fetched again. Deferred tables are logged; the archive is still
written and the exit status is 0.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from traitdump import __version__
from traitdump.lib.config import DumpConfig, load_dump_config
from traitdump.lib.dumper import TraitsDumper
from traitdump.lib.env import load_env_file
from traitdump.lib.errors import ConfigurationError
from traitdump.lib.graph import HttpGraphClient
from traitdump.lib.logging import setup_logging
from traitdump.lib.query import QueryScope
from traitdump.lib.targets import build_targets

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dump-traits",
        description="Dump the trait graph database to a ZIP of CSV tables",
    )
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--env-file", help="Load environment variables from this .env file")
    parser.add_argument("--server", help="Base URL of the web API (env SERVER)")
    parser.add_argument("--token", help="API token (env TOKEN)")
    parser.add_argument("--token-file", help="File containing the API token (env TOKEN_FILE)")
    parser.add_argument(
        "--auth-type",
        choices=["jwt", "bearer", "none"],
        help="Authorization scheme (default: jwt)",
    )
    parser.add_argument("--clade", type=int, help="Restrict the dump to this page's subtree (env ID)")
    parser.add_argument("--chunk-size", type=int, help="SKIP/LIMIT window size (env CHUNK)")
    parser.add_argument("--dest", help="Archive path or directory (env ZIP)")
    parser.add_argument("--workdir", help="Chunk cache location, local path or s3:// URI (env TEMPDIR)")
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the tables and queries without running them",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    parser.add_argument(
        "--log-format",
        choices=["human", "json"],
        default="human",
        help="Log format (default: human)",
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--version", action="version", version=f"traitbank-dump {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> DumpConfig:
    """Merge YAML, environment and CLI settings (later wins)."""
    if args.env_file:
        load_env_file(args.env_file)
    config = load_dump_config(args.config) if args.config else DumpConfig()
    return config.with_env().with_overrides(
        server=args.server,
        token=args.token,
        token_file=args.token_file,
        auth_type=args.auth_type,
        clade=args.clade,
        chunk_size=args.chunk_size,
        dest=args.dest,
        workdir=args.workdir,
    )


def build_scope(config: DumpConfig) -> QueryScope:
    return QueryScope(
        clade=config.clade,
        filter_by_parent=config.filter_by_parent,
        parent_via_match=config.parent_via_match,
        filter_by_canonical=config.filter_by_canonical,
    )


def explain(scope: QueryScope) -> None:
    """Print each table and its query."""
    for target in build_targets(scope):
        print(f"== {target.archive_member}  [{target.strategy!r}]")
        print(f"   columns: {', '.join(target.columns)}")
        print(target.template.template.template)
        print()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        verbose=args.verbose,
        json_format=args.log_format == "json",
        log_file=args.log_file,
    )

    try:
        config = build_config(args)
        scope = build_scope(config)
        if args.explain:
            explain(scope)
            return 0
        auth = config.auth()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    with HttpGraphClient(
        config.server,
        auth,
        throttle=config.throttle(),
        timeout=config.timeout,
        max_retries=config.max_retries,
    ) as client:
        result = TraitsDumper.dump(
            client,
            config.dest,
            chunk_size=config.chunk_size,
            workdir=config.workdir,
            scope=scope,
        )

    for name, reason in result.deferred.items():
        logger.warning("** %s deferred: %s", name, reason)
    # Archive path on its own line for easier cut/paste
    print(result.archive_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
