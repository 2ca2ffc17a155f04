"""Logging setup for dump runs.

Progress, exclusions and deferrals are ordinary log records; this module only
decides where they go and how they look. Logs go to stderr so that stdout
carries nothing but the archive path.

Records about one table carry ``extra={"target": <name>}``; the JSON format
lifts that to a top-level field so a log pipeline can group by table.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

__all__ = [
    "setup_logging",
    "JSONFormatter",
    "HUMAN_FORMAT",
]

HUMAN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Chatty per-request loggers from the HTTP and S3 stacks
_QUIET_LOGGERS = ("httpx", "httpcore", "s3fs", "aiobotocore", "botocore")

_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Example output:
        {"timestamp": "2025-10-01T10:30:00.123Z", "level": "WARNING",
         "logger": "traitdump.lib.dumper", "target": "traits",
         "message": "** Deferred due to failed queries: traits.csv (...)"}
    """

    def __init__(self, exclude_fields: Optional[Iterable[str]] = None):
        super().__init__()
        self.exclude_fields = set(exclude_fields or ())

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
        }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED and key not in self.exclude_fields
        }
        target = extra.pop("target", None)
        if target is not None:
            entry["target"] = target

        entry["message"] = record.getMessage()
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def _formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    return logging.Formatter(HUMAN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Configure the root logger for a dump run.

    Replaces any handlers already installed, so calling it twice does not
    duplicate output.

    Args:
        verbose: DEBUG instead of INFO (adds per-chunk cache hits and windows)
        json_format: Emit JSON lines instead of human-readable text
        log_file: Also append log records to this file
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter = _formatter(json_format)

    handlers: list = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
