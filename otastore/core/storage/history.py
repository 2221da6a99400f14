"""Bounded per-deployment package history kept as one JSON blob."""

from __future__ import annotations

import json
import logging

from . import keys
from .blobs import BlobStore, Bucket
from .errors import InvalidError, NotFoundError
from .models import Package

logger = logging.getLogger(__name__)

MAX_HISTORY_LENGTH = 50


class PackageHistory:
    """Package history manager on top of the blob store.

    Each deployment's history is an ordered JSON list of packages, oldest
    first, stored as a single blob in the history bucket. The object store
    has no partial update, so every change rewrites the whole list.
    """

    def __init__(self, blobs: BlobStore, max_length: int = MAX_HISTORY_LENGTH):
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self._blobs = blobs
        self._max_length = max_length

    @property
    def max_length(self) -> int:
        return self._max_length

    async def load(self, deployment_id: str) -> list[Package]:
        """Return the history of a deployment, oldest first.

        A missing blob or content that does not parse as a list of packages
        yields an empty list. Transport failures still raise so that an
        ``append`` never overwrites history it could not read.
        """
        key = keys.package_history_blob_key(deployment_id)
        try:
            content = await self._blobs.get(Bucket.HISTORY, key)
        except NotFoundError:
            return []

        try:
            documents = json.loads(content.decode("utf-8"))
            if not isinstance(documents, list):
                raise ValueError(f"expected a list, got {type(documents).__name__}")
            return [Package.from_document(document) for document in documents]
        except (ValueError, TypeError, AttributeError, InvalidError) as e:
            logger.warning(f"Discarding unreadable package history for {deployment_id}: {e}")
            return []

    async def save(self, deployment_id: str, packages: list[Package]) -> list[Package]:
        """Replace the history, keeping only the most recent entries."""
        packages = list(packages)[-self._max_length :]
        content = json.dumps([package.to_document() for package in packages])
        await self._blobs.put(
            Bucket.HISTORY,
            keys.package_history_blob_key(deployment_id),
            content,
            content_type="application/json",
        )
        logger.debug(f"Stored {len(packages)} history entries for {deployment_id}")
        return packages

    async def append(self, deployment_id: str, package: Package) -> list[Package]:
        """Append ``package``, evicting the oldest entries beyond the limit."""
        packages = await self.load(deployment_id)
        packages.append(package)
        return await self.save(deployment_id, packages)

    async def clear(self, deployment_id: str) -> None:
        await self.save(deployment_id, [])
