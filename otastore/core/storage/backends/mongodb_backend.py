"""MongoDB backend implementation for document storage.

Entities live in one collection per kind with the namespaced storage key as
``_id``. Every pymongo failure is translated by :func:`map_mongo_error`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from ..errors import ConnectionFailedError, map_mongo_error
from ..object import IndexDefinition, ObjectStorageBackend, SortOrder

logger = logging.getLogger(__name__)

DEFAULT_URI = "mongodb://localhost:27017/codepush"
DEFAULT_DATABASE = "codepush"


def _pymongo_keys(fields: list[tuple[str, SortOrder]]) -> list[tuple[str, int]]:
    return [
        (name, ASCENDING if order == SortOrder.ASCENDING else DESCENDING) for name, order in fields
    ]


class MongoDBBackend(ObjectStorageBackend):
    """Document backend over a pymongo ``MongoClient``."""

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        database: str | None = None,
        client: MongoClient | None = None,
        **kwargs,
    ):
        """Create the client; no network traffic happens until first use.

        Args:
            uri: Connection string; its path selects the database
            database: Explicit database name, taking precedence over ``uri``
            client: Existing client to reuse (tests inject a mock here)
            **kwargs: Extra MongoClient options such as ``serverSelectionTimeoutMS``
        """
        try:
            self._client = client if client is not None else MongoClient(uri, **kwargs)
            self._db = (
                self._client[database]
                if database
                else self._client.get_default_database(default=DEFAULT_DATABASE)
            )
        except PyMongoError as e:
            raise map_mongo_error(e) from e
        self._database_name = self._db.name

    def connect(self) -> None:
        """Round-trip a ping so that setup fails fast on a dead server."""
        try:
            self._client.admin.command("ping")
        except Exception as e:
            raise ConnectionFailedError(f"Failed to connect to MongoDB: {e}") from e
        logger.info(f"Connected to MongoDB database: {self._database_name}")

    def ping(self) -> None:
        try:
            self._db.command("ping")
        except Exception as e:
            raise ConnectionFailedError(f"MongoDB connection failed: {e}") from e

    def close(self) -> None:
        self._client.close()
        logger.info(f"Closed MongoDB connection: {self._database_name}")

    def insert_one(self, collection: str, document: dict[str, Any]) -> str:
        try:
            inserted_id = self._db[collection].insert_one(document).inserted_id
        except Exception as e:
            raise map_mongo_error(e) from e
        logger.debug(f"Inserted {inserted_id} into {collection}")
        return str(inserted_id)

    def find_one(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        try:
            return self._db[collection].find_one(filter or {})
        except Exception as e:
            raise map_mongo_error(e) from e

    def find(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        sort: list[tuple[str, SortOrder]] | None = None,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Stream matching documents; cursor errors surface while iterating."""
        try:
            cursor = self._db[collection].find(filter or {})
            if sort:
                cursor = cursor.sort(_pymongo_keys(sort))
            if limit:
                cursor = cursor.limit(limit)
            yield from cursor
        except Exception as e:
            raise map_mongo_error(e) from e

    def update_one(self, collection: str, filter: dict[str, Any], update: dict[str, Any]) -> int:
        """Apply update operators to the first match; returns the matched count."""
        try:
            result = self._db[collection].update_one(filter, update)
        except Exception as e:
            raise map_mongo_error(e) from e
        logger.debug(
            f"Updated {collection}: matched={result.matched_count}, "
            f"modified={result.modified_count}"
        )
        return result.matched_count

    def delete_one(self, collection: str, filter: dict[str, Any]) -> int:
        try:
            deleted = self._db[collection].delete_one(filter).deleted_count
        except Exception as e:
            raise map_mongo_error(e) from e
        logger.debug(f"Deleted {deleted} document(s) from {collection}")
        return deleted

    def delete_many(self, collection: str, filter: dict[str, Any]) -> int:
        try:
            deleted = self._db[collection].delete_many(filter).deleted_count
        except Exception as e:
            raise map_mongo_error(e) from e
        logger.debug(f"Deleted {deleted} document(s) from {collection}")
        return deleted

    def create_index(self, collection: str, index: IndexDefinition) -> str:
        """Create ``index`` if missing; MongoDB treats a repeat as a no-op."""
        options: dict[str, Any] = {"unique": index.unique, "sparse": index.sparse}
        if index.name:
            options["name"] = index.name
        try:
            index_name = self._db[collection].create_index(_pymongo_keys(index.fields), **options)
        except Exception as e:
            raise map_mongo_error(e) from e
        logger.info(f"Ensured index {index_name} on {collection}")
        return index_name
