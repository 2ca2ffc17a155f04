"""Exceptions raised by trait dumps.

Transport failures and empty results are not exceptions at the dump level:
they surface as chunk outcomes (see ``traitdump.lib.chunks``). The types
here cover the cases that must stop a caller: bad configuration, an attempt
to interpolate an unchecked value into a query, and assembling from a chunk
that does not exist.

Every error keeps its context in ``details`` so a log line or the CLI can
show which setting, chunk or response was involved.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "DumpError",
    "ConfigurationError",
    "TransportError",
    "UnsafeValueError",
    "ChunkAssemblyError",
]

# Statuses worth asking the query service again for
RETRYABLE_STATUSES = frozenset({429, 502, 503})


def _known(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class DumpError(Exception):
    """Base class for dump errors.

    ``str()`` gives the message, prefixed by the target table when there is
    one, followed by any details and a suggestion on their own lines.
    """

    def __init__(
        self,
        message: str,
        *,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.target = target
        self.details: Dict[str, Any] = dict(details or {})
        self.suggestion = suggestion

    def __str__(self) -> str:
        text = f"[{self.target}] {self.message}" if self.target else self.message
        lines = [text]
        lines.extend(f"    {key} = {value}" for key, value in self.details.items())
        if self.suggestion:
            lines.append(f"    hint: {self.suggestion}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "target": self.target,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(DumpError):
    """A setting is missing, malformed or out of range."""

    def __init__(self, message: str, *, field: Optional[str] = None, value: Any = None, **kwargs: Any) -> None:
        self.field = field
        self.value = value
        details = {**kwargs.pop("details", {}), **_known(field=field)}
        if value is not None:
            details["value"] = repr(value)
        super().__init__(message, details=details, **kwargs)


class TransportError(DumpError):
    """Non-success response (or connection failure) from the query endpoint.

    Raised inside the HTTP client so retries can see it; ``execute`` turns it
    into a ``None`` result before it reaches the pagination engine.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.cause = cause
        details = {**kwargs.pop("details", {}), **_known(status=status_code)}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, details=details, **kwargs)

    @property
    def retryable(self) -> bool:
        """Connection failures and overload statuses; never 4xx query errors."""
        return self.status_code is None or self.status_code in RETRYABLE_STATUSES


class UnsafeValueError(DumpError):
    """A value failed the query allow-list and cannot be interpolated."""

    def __init__(self, value: Any, *, placeholder: Optional[str] = None, **kwargs: Any) -> None:
        self.value = value
        self.placeholder = placeholder
        details = {**kwargs.pop("details", {}), **_known(placeholder=placeholder)}
        super().__init__(f"Refusing to interpolate unsafe value {value!r}", details=details, **kwargs)


class ChunkAssemblyError(DumpError):
    """A chunk listed for assembly is missing or the output could not be written."""

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs: Any) -> None:
        self.path = path
        details = {**kwargs.pop("details", {}), **_known(path=path)}
        kwargs.setdefault("suggestion", "Only pass chunks whose fetch succeeded with rows.")
        super().__init__(message, details=details, **kwargs)
