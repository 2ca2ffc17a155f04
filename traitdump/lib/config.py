"""Configuration for dump runs.

Settings come from, in increasing priority: defaults, a YAML file,
environment variables, and explicit overrides (CLI flags).

Example YAML (dump.yaml):
    server: https://eol.org/
    token_file: ~/.eol/api.token
    clade: 7674
    chunk_size: 20000
    dest: ./dumps/
    workdir: ./dumps/work
    throttle:
      rows: 100
      seconds: 1.0

Environment variables: SERVER, TOKEN, TOKEN_FILE, ID, CHUNK, ZIP, TEMPDIR,
THROTTLE_ROWS, THROTTLE_SECONDS, QUERY_TIMEOUT, QUERY_RETRIES.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from traitdump.lib.auth import AuthConfig, AuthType, read_token_file
from traitdump.lib.env import expand_options, read_env_settings
from traitdump.lib.errors import ConfigurationError
from traitdump.lib.throttle import DEFAULT_DELAY, DEFAULT_THRESHOLD, ResponseThrottle

logger = logging.getLogger(__name__)

__all__ = [
    "DumpConfig",
    "load_dump_config",
    "DEFAULT_SERVER",
    "ENV_VARS",
]

DEFAULT_SERVER = "https://eol.org/"

# Environment variable -> DumpConfig field
ENV_VARS: Dict[str, str] = {
    "SERVER": "server",
    "TOKEN": "token",
    "TOKEN_FILE": "token_file",
    "ID": "clade",
    "CHUNK": "chunk_size",
    "ZIP": "dest",
    "TEMPDIR": "workdir",
    "THROTTLE_ROWS": "throttle_rows",
    "THROTTLE_SECONDS": "throttle_seconds",
    "QUERY_TIMEOUT": "timeout",
    "QUERY_RETRIES": "max_retries",
}

_INT_FIELDS = {"clade", "chunk_size", "throttle_rows", "max_retries"}
_FLOAT_FIELDS = {"throttle_seconds", "timeout"}
_BOOL_FIELDS = {"filter_by_parent", "parent_via_match", "filter_by_canonical"}


@dataclass(frozen=True)
class DumpConfig:
    """All parameters of a dump run."""

    server: str = DEFAULT_SERVER
    token: Optional[str] = None
    token_file: Optional[str] = None
    auth_type: str = "jwt"
    clade: Optional[int] = None
    chunk_size: Optional[int] = None
    dest: Optional[str] = None
    workdir: Optional[str] = None
    throttle_rows: int = DEFAULT_THRESHOLD
    throttle_seconds: float = DEFAULT_DELAY
    timeout: Optional[float] = None
    max_retries: int = 1
    filter_by_parent: bool = True
    parent_via_match: bool = True
    filter_by_canonical: bool = False

    def __post_init__(self) -> None:
        for name in _INT_FIELDS | _FLOAT_FIELDS | _BOOL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _coerce(name, value))

        if not self.server:
            raise ConfigurationError("server is required", field="server")
        if self.chunk_size is not None and self.chunk_size < 0:
            raise ConfigurationError("chunk_size must be >= 0", field="chunk_size", value=self.chunk_size)
        if self.throttle_rows < 0 or self.throttle_seconds < 0:
            raise ConfigurationError("throttle settings must be >= 0", field="throttle")
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be >= 1", field="max_retries", value=self.max_retries)
        try:
            AuthType(self.auth_type)
        except ValueError:
            raise ConfigurationError(
                f"Unsupported auth_type: '{self.auth_type}'. Use 'jwt', 'bearer', or 'none'",
                field="auth_type",
                value=self.auth_type,
            )

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "DumpConfig":
        """Build from a dict (e.g. parsed YAML), expanding ${VAR} references."""
        options = expand_options(dict(options))
        throttle = options.pop("throttle", None)
        if isinstance(throttle, dict):
            if "rows" in throttle:
                options["throttle_rows"] = throttle["rows"]
            if "seconds" in throttle:
                options["throttle_seconds"] = throttle["seconds"]

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                details={"allowed": ", ".join(sorted(known))},
            )
        return cls(**{k: v for k, v in options.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DumpConfig":
        """Build from environment variables only."""
        return cls().with_env(environ)

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "DumpConfig":
        """Return a copy with any set environment variables applied."""
        return self.with_overrides(**read_env_settings(ENV_VARS, environ))

    def with_overrides(self, **overrides: Any) -> "DumpConfig":
        """Return a copy with non-None overrides applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **updates) if updates else self

    def auth(self) -> Optional[AuthConfig]:
        """Authentication for the query endpoint.

        Raises:
            ConfigurationError: If a token is required but not available
        """
        auth_type = AuthType(self.auth_type)
        if auth_type == AuthType.NONE:
            return None

        token = self.token
        if not token and self.token_file:
            try:
                token = read_token_file(self.token_file)
            except OSError as exc:
                raise ConfigurationError(
                    f"Cannot read token file: {exc}",
                    field="token_file",
                    value=self.token_file,
                ) from exc
        if not token:
            raise ConfigurationError(
                "Token not supplied",
                field="token",
                suggestion="Set TOKEN or TOKEN_FILE, or pass --token/--token-file.",
            )
        auth = AuthConfig(auth_type=auth_type, token=token)
        try:
            auth.authorization()
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(
                f"Token cannot be resolved: {exc.args[0] if exc.args else exc}",
                field="token",
                suggestion="Set the environment variable the token refers to.",
            ) from exc
        return auth

    def throttle(self) -> ResponseThrottle:
        return ResponseThrottle(threshold=self.throttle_rows, delay=self.throttle_seconds)


def _coerce(name: str, value: Any) -> Any:
    try:
        if name in _BOOL_FIELDS:
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if name in _INT_FIELDS:
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for {name}", field=name, value=value) from exc


def load_dump_config(path: Union[str, Path]) -> DumpConfig:
    """Load a DumpConfig from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}", field="config")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}", field="config") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}", field="config")

    logger.debug("Loaded configuration from %s", path)
    return DumpConfig.from_mapping(data)
