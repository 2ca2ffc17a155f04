"""S3 backend for the chunk cache.

Keeping the cache in a bucket lets a dump resume on a different machine from
the chunks an earlier run fetched. Each chunk is uploaded with a single PUT,
which S3 makes visible all at once.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from traitdump.lib.storage.base import StorageBackend, StorageResult

logger = logging.getLogger(__name__)

__all__ = ["S3Storage"]


class S3Storage(StorageBackend):
    """Chunk files under an S3 prefix, accessed through s3fs.

    Example:
        >>> storage = S3Storage("s3://dumps-bucket/traits_all_202510/")
        >>> storage.exists("pages.csv")
        True

    Credentials come from the options ``key``/``secret``/``region``/
    ``endpoint_url``/``anon``, falling back to AWS_ACCESS_KEY_ID,
    AWS_SECRET_ACCESS_KEY, AWS_REGION and AWS_ENDPOINT_URL. Pass ``fs`` to
    supply an already constructed filesystem.
    """

    def __init__(self, base_path: str, **options: Any) -> None:
        super().__init__(base_path, **options)
        self._fs = options.get("fs")

        location = base_path[5:] if base_path.startswith("s3://") else base_path
        bucket, _, prefix = location.partition("/")
        if not bucket:
            raise ValueError(f"S3 path has no bucket: {base_path!r}")
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    @property
    def scheme(self) -> str:
        return "s3"

    @property
    def fs(self) -> Any:
        """Lazy-load the S3 filesystem."""
        if self._fs is None:
            try:
                import s3fs
            except ImportError:
                raise ImportError(
                    "s3fs is required for an S3 chunk cache. "
                    "Install with: pip install traitbank-dump[s3]"
                )
            self._fs = s3fs.S3FileSystem(**self._fs_options())
        return self._fs

    def _fs_options(self) -> Dict[str, Any]:
        opts = self.options
        fs_options: Dict[str, Any] = {}
        client_kwargs: Dict[str, Any] = {}

        key = opts.get("key") or os.environ.get("AWS_ACCESS_KEY_ID")
        secret = opts.get("secret") or os.environ.get("AWS_SECRET_ACCESS_KEY")
        if key and secret:
            fs_options["key"] = key
            fs_options["secret"] = secret

        region = opts.get("region") or os.environ.get("AWS_REGION")
        if region:
            client_kwargs["region_name"] = region
        endpoint_url = opts.get("endpoint_url") or os.environ.get("AWS_ENDPOINT_URL")
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if client_kwargs:
            fs_options["client_kwargs"] = client_kwargs

        if opts.get("anon"):
            fs_options["anon"] = True
        return fs_options

    def key_for(self, path: str) -> str:
        """``bucket/prefix/path`` for a relative chunk path."""
        parts = [self.bucket, self.prefix, path.strip("/")]
        return "/".join(part for part in parts if part)

    def exists(self, path: str) -> bool:
        key = self.key_for(path)
        try:
            return bool(self.fs.isfile(key))
        except OSError as e:
            logger.warning("Error checking existence of s3://%s: %s", key, e)
            return False

    def read_bytes(self, path: str) -> bytes:
        with self.fs.open(self.key_for(path), "rb") as f:
            return f.read()

    def write_bytes(self, path: str, data: bytes) -> StorageResult:
        key = self.key_for(path)
        try:
            self.fs.pipe_file(key, data)
        except OSError as e:
            logger.error("Failed to write s3://%s: %s", key, e)
            return StorageResult(success=False, path=f"s3://{key}", error=str(e))
        return StorageResult(success=True, path=f"s3://{key}", bytes_written=len(data))

    def delete(self, path: str) -> bool:
        key = self.key_for(path)
        try:
            self.fs.rm(key, recursive=self.fs.isdir(key))
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete s3://%s: %s", key, e)
            return False
        return True
