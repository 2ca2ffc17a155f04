"""Environment handling for dump runs.

Dumps are usually launched from cron or a shell one-liner
(``ID=7674 CHUNK=20000 TOKEN=... python -m traitdump``), so plain
environment variables are a first-class settings source. This module loads
``.env`` files (python-dotenv), reads those variables, and expands
``${VAR_NAME}`` / ``$VAR_NAME`` references inside YAML values and tokens.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import load_dotenv

__all__ = ["expand_env_vars", "expand_options", "load_env_file", "read_env_settings"]

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load a .env file into ``os.environ``.

    Variables already set in the environment win unless ``override``. With
    no path, python-dotenv searches upward from the current directory.

    Returns:
        True if a file was found and loaded
    """
    return load_dotenv(dotenv_path=path, override=override)


def read_env_settings(
    names: Mapping[str, str],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Collect settings from environment variables.

    Args:
        names: Environment variable name -> setting name
        environ: Variables to read (default: ``os.environ``)

    Returns:
        Setting name -> raw string value, for variables that are set and
        non-empty (``ID= python -m traitdump`` means "no clade")
    """
    environ = os.environ if environ is None else environ
    return {setting: environ[var] for var, setting in names.items() if environ.get(var)}


def expand_env_vars(value: str, *, strict: bool = False) -> str:
    """Replace ``${VAR}`` and ``$VAR`` references with their values.

    Unset variables are left as written, or raise KeyError when ``strict``.

    Example:
        >>> os.environ["TRAITBANK_TOKEN"] = "abc"
        >>> expand_env_vars("${TRAITBANK_TOKEN}")
        'abc'
    """

    def lookup(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        if name in os.environ:
            return os.environ[name]
        if strict:
            raise KeyError(f"Environment variable not set: {name}")
        return match.group(0)

    return ENV_VAR_PATTERN.sub(lookup, value)


def _expand(value: Any, strict: bool) -> Any:
    if isinstance(value, str):
        return expand_env_vars(value, strict=strict)
    if isinstance(value, dict):
        return {key: _expand(item, strict) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand(item, strict) for item in value]
    return value


def expand_options(options: Dict[str, Any], *, strict: bool = False) -> Dict[str, Any]:
    """Expand references in every string of a (nested) settings dict."""
    return {key: _expand(value, strict) for key, value in options.items()}
