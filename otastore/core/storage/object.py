"""Document storage backend contract.

Backends expose blocking, MongoDB-style operations over named collections
and raise only :mod:`otastore.core.storage.errors` exceptions. The async
:class:`~otastore.core.storage.documents.DocumentStore` runs them off the
event loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any


class SortOrder(Enum):
    """Direction of an index or sort key."""

    ASCENDING = 1
    DESCENDING = -1


@dataclass
class IndexDefinition:
    """Fields and options of one collection index."""

    fields: list[tuple[str, SortOrder]]
    unique: bool = False
    sparse: bool = False
    name: str | None = None

    @classmethod
    def on(cls, field: str, unique: bool = False, sparse: bool = False) -> IndexDefinition:
        """Single-field ascending index."""
        return cls(fields=[(field, SortOrder.ASCENDING)], unique=unique, sparse=sparse)


class ObjectStorageBackend(ABC):
    """Blocking document store, one implementation per database."""

    @abstractmethod
    def connect(self) -> None:
        """Establish the connection and verify it is live.

        Raises:
            ConnectionFailedError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    def ping(self) -> None:
        """Verify live connectivity without touching any collection.

        Raises:
            ConnectionFailedError: If the backend does not answer
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    def insert_one(self, collection: str, document: dict[str, Any]) -> str:
        """Insert a single document.

        Args:
            collection: Collection name
            document: Document to insert; ``_id`` is the storage key

        Returns:
            ID of the inserted document

        Raises:
            AlreadyExistsError: If ``_id`` or a unique index collides
        """
        pass

    @abstractmethod
    def find_one(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """First document matching ``filter``, or None."""
        pass

    @abstractmethod
    def find(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        sort: list[tuple[str, SortOrder]] | None = None,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Find multiple documents.

        Args:
            collection: Collection name
            filter: Query filter (MongoDB-style)
            sort: Sort specification
            limit: Maximum number of documents to return

        Yields:
            Matching documents
        """
        pass

    @abstractmethod
    def update_one(self, collection: str, filter: dict[str, Any], update: dict[str, Any]) -> int:
        """Update a single document.

        Args:
            collection: Collection name
            filter: Query filter to match the document
            update: Update operations (only ``$set`` and ``$unset`` are required)

        Returns:
            Number of matched documents (0 or 1)

        Raises:
            AlreadyExistsError: If the update violates a unique index
        """
        pass

    @abstractmethod
    def delete_one(self, collection: str, filter: dict[str, Any]) -> int:
        """Delete the first match and return how many were removed (0 or 1)."""
        pass

    @abstractmethod
    def delete_many(self, collection: str, filter: dict[str, Any]) -> int:
        """Delete every document matching ``filter``.

        Returns:
            Number of documents deleted
        """
        pass

    @abstractmethod
    def create_index(self, collection: str, index: IndexDefinition) -> str:
        """Idempotently create ``index`` and return its name."""
        pass
