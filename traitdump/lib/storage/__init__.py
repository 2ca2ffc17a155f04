"""Storage backends for the chunk cache.

Usage:
    from traitdump.lib.storage import get_storage

    storage = get_storage("./traits_all_202510/")            # local directory
    storage = get_storage("s3://dumps-bucket/traits_all_202510/")
"""

from typing import Any, Tuple

from traitdump.lib.storage.base import StorageBackend, StorageResult
from traitdump.lib.storage.local import LocalStorage
from traitdump.lib.storage.s3 import S3Storage

__all__ = [
    "StorageBackend",
    "StorageResult",
    "LocalStorage",
    "S3Storage",
    "get_storage",
    "parse_uri",
]


def parse_uri(location: str) -> Tuple[str, str]:
    """Split a working-directory location into ``(scheme, path)``.

    Examples:
        >>> parse_uri("./traits_all_202510/")
        ('local', './traits_all_202510/')
        >>> parse_uri("s3://dumps-bucket/work/")
        ('s3', 'dumps-bucket/work/')
    """
    if location.startswith("s3://"):
        return ("s3", location[5:])
    return ("local", location)


def get_storage(location: str, **options: Any) -> StorageBackend:
    """Backend for a working-directory location."""
    scheme, _ = parse_uri(location)
    if scheme == "s3":
        return S3Storage(location, **options)
    return LocalStorage(location, **options)
