"""Blob store adapter over the package and package-history buckets.

Package blobs may be fronted by a CDN: URLs resolve to the CDN domain when
one is configured, and every new package blob triggers an invalidation of
its own path. History blobs are never invalidated.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Callable
from datetime import timedelta
from enum import Enum
from typing import IO, Any, TypeVar

from otastore.core.utils.setup import OneTimeSetup

from .blob import BlobStorageBackend
from .cdn import CloudFrontInvalidator
from .errors import ConnectionFailedError, InvalidError, StorageError, map_error
from .keys import HEALTH_CHECK_KEY

logger = logging.getLogger(__name__)

T = TypeVar("T")

HEALTH_CHECK_VALUE = b"health"

BlobContent = bytes | bytearray | memoryview | str | IO[bytes] | AsyncIterable[bytes]


class Bucket(Enum):
    """Logical buckets used by the blob store."""

    PACKAGES = "packages"
    HISTORY = "history"


def _to_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, bytes | bytearray | memoryview):
        return bytes(data)
    raise InvalidError(f"Unsupported blob chunk type: {type(data).__name__}")


async def _materialize(data: BlobContent) -> bytes:
    """Read ``data`` fully so its length is known before upload.

    Text, whether passed directly or read from a text-mode file, is stored
    as UTF-8.
    """
    if isinstance(data, bytes | bytearray | memoryview | str):
        return _to_bytes(data)
    if hasattr(data, "__aiter__"):
        return b"".join([_to_bytes(chunk) async for chunk in data])
    if hasattr(data, "read"):
        return _to_bytes(await asyncio.to_thread(data.read))
    raise InvalidError(f"Unsupported blob content type: {type(data).__name__}")


class BlobStore:
    """Async blob store adapter with optional CDN invalidation."""

    def __init__(
        self,
        packages: BlobStorageBackend,
        history: BlobStorageBackend,
        cdn: CloudFrontInvalidator | None = None,
        presign_ttl: timedelta = timedelta(hours=1),
    ):
        """Initialize the adapter; setup starts on the first operation.

        Args:
            packages: Backend bound to the package-blob bucket
            history: Backend bound to the package-history bucket
            cdn: CDN invalidator; None disables CDN URLs and invalidation
            presign_ttl: Default lifetime of presigned URLs
        """
        self._backends = {Bucket.PACKAGES: packages, Bucket.HISTORY: history}
        self._cdn = cdn
        self._presign_ttl = presign_ttl
        self._setup = OneTimeSetup(self._run_setup, name="blob store setup")

    @property
    def cdn(self) -> CloudFrontInvalidator | None:
        return self._cdn

    def backend(self, bucket: Bucket) -> BlobStorageBackend:
        return self._backends[bucket]

    async def _run_setup(self) -> None:
        for backend in self._backends.values():
            await asyncio.to_thread(backend.connect)
        for backend in self._backends.values():
            await asyncio.to_thread(backend.put, HEALTH_CHECK_KEY, HEALTH_CHECK_VALUE)
        logger.info("Blob store ready")

    async def ready(self) -> None:
        """Wait for the one-time setup to complete."""
        await self._setup.wait()

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        try:
            await self._setup.wait()
            return await asyncio.to_thread(func, *args)
        except StorageError:
            raise
        except Exception as e:
            raise map_error(e) from e

    async def put(
        self,
        bucket: Bucket,
        key: str,
        data: BlobContent,
        length: int | None = None,
        content_type: str | None = None,
    ) -> str:
        """Store a blob, reading a stream fully before the upload.

        Args:
            bucket: Target bucket
            key: Object key
            data: Bytes, text, a binary file object or an async byte iterator
            length: Expected size; a mismatch with the content raises InvalidError
            content_type: MIME type of the content

        Returns:
            ETag of the stored blob
        """
        content = await _materialize(data)
        if length is not None and length != len(content):
            raise InvalidError(
                f"Blob {key} is {len(content)} bytes but {length} bytes were declared"
            )
        return await self._call(self._backends[bucket].put, key, content, content_type)

    async def get(self, bucket: Bucket, key: str) -> bytes:
        return await self._call(self._backends[bucket].get, key)

    async def get_text(self, bucket: Bucket, key: str) -> str:
        content = await self.get(bucket, key)
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidError(f"Blob {key} is not UTF-8 text") from e

    async def delete(self, bucket: Bucket, key: str) -> None:
        await self._call(self._backends[bucket].delete, key)

    async def presign(self, key: str, ttl: timedelta | None = None) -> str:
        """Time-limited direct URL to a package blob."""
        return await self._call(
            self._backends[Bucket.PACKAGES].generate_presigned_url, key, ttl or self._presign_ttl
        )

    async def resolve_url(self, key: str) -> str:
        """CDN URL when a CDN domain is known, otherwise a presigned URL."""
        if self._cdn is not None:
            url = self._cdn.url_for(key)
            if url is not None:
                return url
        return await self.presign(key)

    async def invalidate(self, paths: list[str]) -> None:
        """Purge exactly ``paths`` from the CDN; no-op without a CDN."""
        if self._cdn is None or not paths:
            return
        await self._call(self._cdn.invalidate, paths)

    async def add_blob(self, blob_id: str, data: BlobContent, length: int | None = None) -> str:
        """Store a package blob and invalidate its CDN path.

        The write does not depend on the invalidation, but an invalidation
        failure is raised to the caller with the blob left in place.

        Returns:
            ``blob_id``
        """
        await self.put(Bucket.PACKAGES, blob_id, data, length)
        if self._cdn is not None:
            await self.invalidate(["/" + blob_id])
        return blob_id

    async def get_blob_url(self, blob_id: str) -> str:
        return await self.resolve_url(blob_id)

    async def remove_blob(self, blob_id: str) -> None:
        await self.delete(Bucket.PACKAGES, blob_id)

    async def check_health(self) -> None:
        """Read back the sentinel written to each bucket during setup.

        Raises:
            ConnectionFailedError: On a setup or read failure, or unexpected content
        """
        try:
            await self._setup.wait()
        except ConnectionFailedError:
            raise
        except Exception as e:
            raise ConnectionFailedError(f"The object store could not be initialized: {e}") from e

        for backend in self._backends.values():
            try:
                content = await asyncio.to_thread(backend.get, HEALTH_CHECK_KEY)
            except Exception as e:
                raise ConnectionFailedError(
                    f"The object store failed the health check for {backend.bucket}: {e}"
                ) from e
            if content != HEALTH_CHECK_VALUE:
                raise ConnectionFailedError(
                    f"The object store failed the health check for {backend.bucket}"
                )
