"""Filesystem backend implementation for blob storage.

Each bucket is a directory under a base path. Used for local development
and tests in place of an S3-compatible store.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

from ..blob import BlobStorageBackend
from ..errors import ConnectionFailedError, InvalidError, NotFoundError, OtherError

logger = logging.getLogger(__name__)


class FilesystemBackend(BlobStorageBackend):
    """One directory per bucket; each blob has a sibling ``.meta`` JSON file."""

    def __init__(self, base_path: str | Path, bucket: str):
        self._bucket = bucket
        self._root = Path(base_path) / bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def _get_blob_path(self, key: str) -> Path:
        """Map ``key`` into the bucket directory, refusing anything that escapes it."""
        normalized_key = Path(key).as_posix()
        if (
            normalized_key in ("", ".")
            or normalized_key.startswith("/")
            or ".." in Path(key).parts
        ):
            raise InvalidError(f"Invalid blob key: {key!r}")
        return self._root / normalized_key

    def _get_metadata_path(self, key: str) -> Path:
        blob_path = self._get_blob_path(key)
        return blob_path.with_name(blob_path.name + ".meta")

    def connect(self) -> None:
        """Create the bucket directory if it does not exist."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            logger.info(f"Bucket directory ready: {self._root}")
        except OSError as e:
            raise ConnectionFailedError(f"Cannot create bucket directory {self._root}: {e}") from e

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        blob_path = self._get_blob_path(key)
        try:
            blob_path.parent.mkdir(parents=True, exist_ok=True)
            blob_path.write_bytes(data)
            self._get_metadata_path(key).write_text(
                json.dumps(
                    {
                        "key": key,
                        "size": len(data),
                        "content_type": content_type or "application/octet-stream",
                        "last_modified": datetime.now(UTC).isoformat(),
                        "custom_metadata": metadata or {},
                    },
                    indent=2,
                )
            )

            # mtime in microseconds stands in for an etag
            etag = str(int(blob_path.stat().st_mtime * 1000000))
            logger.info(f"Wrote {self._bucket}/{key} ({len(data)} bytes)")
            return etag

        except OSError as e:
            raise OtherError(f"Failed to store blob {key}: {e}") from e

    def get(self, key: str) -> bytes:
        blob_path = self._get_blob_path(key)
        if not blob_path.is_file():
            raise NotFoundError(f"Blob not found: {self._bucket}/{key}")
        try:
            return blob_path.read_bytes()
        except OSError as e:
            raise OtherError(f"Failed to retrieve blob {key}: {e}") from e

    def delete(self, key: str) -> None:
        blob_path = self._get_blob_path(key)
        if not blob_path.is_file():
            raise NotFoundError(f"Blob not found: {self._bucket}/{key}")
        try:
            blob_path.unlink()
            self._get_metadata_path(key).unlink(missing_ok=True)
            logger.info(f"Removed {self._bucket}/{key}")
        except OSError as e:
            raise OtherError(f"Failed to delete blob {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._get_blob_path(key).is_file()

    def generate_presigned_url(self, key: str, expiration: timedelta = timedelta(hours=1)) -> str:
        """Return a file:// URL; the filesystem has no notion of signing."""
        blob_path = self._get_blob_path(key)
        if not blob_path.is_file():
            raise NotFoundError(f"Blob not found: {self._bucket}/{key}")
        return blob_path.absolute().as_uri()
