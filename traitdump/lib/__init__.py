"""Trait dump library modules.

This package contains the query client, the chunk-caching pagination engine,
the chunk assembler and the dump orchestrator, plus their configuration,
logging and storage support.
"""

from traitdump.lib.auth import AuthConfig, AuthType, build_auth_headers
from traitdump.lib.chunks import (
    ChunkKey,
    ChunkOutcome,
    ChunkState,
    ChunkStore,
    assemble_chunks,
)
from traitdump.lib.config import DumpConfig, load_dump_config
from traitdump.lib.dumper import DumpResult, TraitsDumper, default_stem, resolve_destination
from traitdump.lib.env import expand_env_vars, expand_options, load_env_file, read_env_settings
from traitdump.lib.errors import (
    ChunkAssemblyError,
    ConfigurationError,
    DumpError,
    TransportError,
    UnsafeValueError,
)
from traitdump.lib.graph import CallableGraphClient, GraphClient, HttpGraphClient
from traitdump.lib.logging import JSONFormatter, setup_logging
from traitdump.lib.paginator import (
    OffsetPaginationState,
    PaginationConfig,
    PaginationStrategy,
    Paginator,
    SingleQueryState,
    build_pagination_state,
)
from traitdump.lib.query import Query, QueryScope, QueryTemplate, is_safe_value
from traitdump.lib.storage import LocalStorage, S3Storage, StorageBackend, get_storage
from traitdump.lib.targets import (
    DumpTarget,
    NoPartitions,
    Partition,
    PartitionStrategy,
    PredicatePartitions,
    TargetState,
    build_targets,
)
from traitdump.lib.throttle import ResponseThrottle

__all__ = [
    # Auth
    "AuthConfig",
    "AuthType",
    "build_auth_headers",
    # Chunks
    "ChunkKey",
    "ChunkOutcome",
    "ChunkState",
    "ChunkStore",
    "assemble_chunks",
    # Config
    "DumpConfig",
    "load_dump_config",
    # Dumper
    "DumpResult",
    "TraitsDumper",
    "default_stem",
    "resolve_destination",
    # Environment
    "expand_env_vars",
    "expand_options",
    "load_env_file",
    "read_env_settings",
    # Errors
    "ChunkAssemblyError",
    "ConfigurationError",
    "DumpError",
    "TransportError",
    "UnsafeValueError",
    # Graph
    "CallableGraphClient",
    "GraphClient",
    "HttpGraphClient",
    # Logging
    "JSONFormatter",
    "setup_logging",
    # Pagination
    "OffsetPaginationState",
    "PaginationConfig",
    "PaginationStrategy",
    "Paginator",
    "SingleQueryState",
    "build_pagination_state",
    # Query
    "Query",
    "QueryScope",
    "QueryTemplate",
    "is_safe_value",
    # Storage
    "LocalStorage",
    "S3Storage",
    "StorageBackend",
    "get_storage",
    # Targets
    "DumpTarget",
    "NoPartitions",
    "Partition",
    "PartitionStrategy",
    "PredicatePartitions",
    "TargetState",
    "build_targets",
    # Throttle
    "ResponseThrottle",
]
