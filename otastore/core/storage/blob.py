"""Blob storage backend contract.

A backend is bound to one bucket and offers S3-like blocking operations on
opaque binary data. Backends raise only :mod:`otastore.core.storage.errors`
exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta


class BlobStorageBackend(ABC):
    """Blocking store of opaque bytes inside a single bucket."""

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Name of the bucket this backend is bound to."""
        pass

    @abstractmethod
    def connect(self) -> None:
        """Verify connectivity and create the bucket if it does not exist.

        Raises:
            ConnectionFailedError: If the store cannot be reached
        """
        pass

    @abstractmethod
    def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store a blob.

        Args:
            key: Object key for the blob
            data: Fully materialized content; its length is sent up front
            content_type: MIME type of the content
            metadata: Custom metadata key-value pairs

        Returns:
            ETag or version ID of the stored blob
        """
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Full content of ``key``.

        Raises:
            NotFoundError: If the blob doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete a blob.

        Raises:
            NotFoundError: If the blob doesn't exist
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    def generate_presigned_url(self, key: str, expiration: timedelta = timedelta(hours=1)) -> str:
        """Generate a time-limited GET URL for direct access.

        Args:
            key: Object key
            expiration: How long the URL should be valid

        Returns:
            Presigned URL string
        """
        pass
