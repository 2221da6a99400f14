"""In-memory backend implementation for document storage.

Supports the subset of MongoDB semantics the document store relies on:
equality and ``$exists`` filters on dotted paths, ``$set``/``$unset``
updates, and unique indexes. Intended for local development and tests.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterator
from typing import Any

from ..errors import AlreadyExistsError, InvalidError
from ..object import IndexDefinition, ObjectStorageBackend, SortOrder

logger = logging.getLogger(__name__)

_MISSING = object()


def _get_path(document: dict[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    target = document
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = value


def _unset_path(document: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    target: Any = document
    for part in parents:
        target = target.get(part) if isinstance(target, dict) else None
    if isinstance(target, dict):
        target.pop(leaf, None)


def _matches(document: dict[str, Any], filter: dict[str, Any]) -> bool:
    for path, condition in filter.items():
        value = _get_path(document, path)
        if isinstance(condition, dict) and any(key.startswith("$") for key in condition):
            for operator, operand in condition.items():
                if operator == "$exists":
                    if (value is not _MISSING) != bool(operand):
                        return False
                elif operator == "$in":
                    if value is _MISSING or value not in operand:
                        return False
                else:
                    raise InvalidError(f"Unsupported query operator: {operator}")
        elif value is _MISSING or value != condition:
            return False
    return True


class MemoryBackend(ObjectStorageBackend):
    """In-memory implementation of document storage backend."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._unique: dict[str, list[list[str]]] = {}
        self._lock = threading.Lock()
        self._connected = False

    def connect(self) -> None:
        self._connected = True
        logger.info("Initialized in-memory document backend")

    def ping(self) -> None:
        pass

    def close(self) -> None:
        self._connected = False

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def _check_unique(self, collection: str, document: dict[str, Any], skip_id: Any = None) -> None:
        for paths in self._unique.get(collection, []):
            values = [_get_path(document, path) for path in paths]
            if all(value is _MISSING for value in values):
                continue
            for doc_id, other in self._collection(collection).items():
                if doc_id == skip_id:
                    continue
                if [_get_path(other, path) for path in paths] == values:
                    raise AlreadyExistsError(
                        f"Duplicate key error in {collection}: {dict(zip(paths, values))}"
                    )

    def insert_one(self, collection: str, document: dict[str, Any]) -> str:
        with self._lock:
            document = copy.deepcopy(document)
            doc_id = document.setdefault("_id", str(len(self._collection(collection)) + 1))
            if doc_id in self._collection(collection):
                raise AlreadyExistsError(f"Duplicate key error in {collection}: _id={doc_id}")
            self._check_unique(collection, document)
            self._collection(collection)[doc_id] = document
            logger.debug(f"Inserted document into {collection}: {doc_id}")
            return str(doc_id)

    def find_one(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        return next(self.find(collection, filter, limit=1), None)

    def find(
        self,
        collection: str,
        filter: dict[str, Any] | None = None,
        sort: list[tuple[str, SortOrder]] | None = None,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        with self._lock:
            matched = [
                copy.deepcopy(document)
                for document in self._collection(collection).values()
                if _matches(document, filter or {})
            ]
        for field, order in reversed(sort or []):
            matched.sort(
                key=lambda doc: (_get_path(doc, field) is _MISSING, _get_path(doc, field)),
                reverse=order == SortOrder.DESCENDING,
            )
        if limit:
            matched = matched[:limit]
        yield from matched

    def update_one(self, collection: str, filter: dict[str, Any], update: dict[str, Any]) -> int:
        unsupported = set(update) - {"$set", "$unset"}
        if unsupported:
            raise InvalidError(f"Unsupported update operators: {sorted(unsupported)}")
        with self._lock:
            for doc_id, document in self._collection(collection).items():
                if not _matches(document, filter):
                    continue
                updated = copy.deepcopy(document)
                for path, value in update.get("$set", {}).items():
                    _set_path(updated, path, copy.deepcopy(value))
                for path in update.get("$unset", {}):
                    _unset_path(updated, path)
                self._check_unique(collection, updated, skip_id=doc_id)
                self._collection(collection)[doc_id] = updated
                return 1
            return 0

    def delete_one(self, collection: str, filter: dict[str, Any]) -> int:
        with self._lock:
            for doc_id, document in self._collection(collection).items():
                if _matches(document, filter):
                    del self._collection(collection)[doc_id]
                    return 1
            return 0

    def delete_many(self, collection: str, filter: dict[str, Any]) -> int:
        with self._lock:
            docs = self._collection(collection)
            doomed = [doc_id for doc_id, document in docs.items() if _matches(document, filter)]
            for doc_id in doomed:
                del docs[doc_id]
            return len(doomed)

    def create_index(self, collection: str, index: IndexDefinition) -> str:
        paths = [field for field, _ in index.fields]
        name = index.name or "_".join(f"{field}_{order.value}" for field, order in index.fields)
        with self._lock:
            if index.unique and paths not in self._unique.setdefault(collection, []):
                self._unique[collection].append(paths)
        return name
