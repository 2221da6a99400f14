"""Tests for the in-memory document backend."""

from __future__ import annotations

import pytest

from otastore.core.storage.backends.memory_backend import MemoryBackend
from otastore.core.storage.errors import AlreadyExistsError, InvalidError
from otastore.core.storage.object import IndexDefinition, SortOrder


@pytest.fixture
def backend():
    backend = MemoryBackend()
    backend.connect()
    return backend


class TestMemoryBackend:
    """Test suite for MemoryBackend."""

    def test_insert_and_find(self, backend):
        """Test inserting and finding a document by _id."""
        backend.insert_one("apps", {"_id": "app:a1", "id": "a1", "name": "MyApp"})

        assert backend.find_one("apps", {"_id": "app:a1"})["name"] == "MyApp"
        assert backend.find_one("apps", {"_id": "app:missing"}) is None

    def test_duplicate_id(self, backend):
        """Test that a duplicate _id is rejected."""
        backend.insert_one("apps", {"_id": "app:a1"})
        with pytest.raises(AlreadyExistsError):
            backend.insert_one("apps", {"_id": "app:a1"})

    def test_unique_index(self, backend):
        """Test that a unique index rejects duplicates on insert and update."""
        backend.create_index("deployments", IndexDefinition.on("key", unique=True))
        backend.insert_one("deployments", {"_id": "d1", "key": "K1"})
        backend.insert_one("deployments", {"_id": "d2", "key": "K2"})

        with pytest.raises(AlreadyExistsError):
            backend.insert_one("deployments", {"_id": "d3", "key": "K1"})
        with pytest.raises(AlreadyExistsError):
            backend.update_one("deployments", {"_id": "d2"}, {"$set": {"key": "K1"}})

        assert backend.find_one("deployments", {"_id": "d2"})["key"] == "K2"

    def test_returned_documents_are_copies(self, backend):
        """Test that mutating a result does not change the stored document."""
        backend.insert_one("apps", {"_id": "a1", "name": "MyApp"})
        found = backend.find_one("apps", {"_id": "a1"})
        found["name"] = "Changed"

        assert backend.find_one("apps", {"_id": "a1"})["name"] == "MyApp"

    def test_exists_filter_on_nested_path(self, backend):
        """Test $exists on a dotted path."""
        backend.insert_one("apps", {"_id": "a1", "collaborators": {"acc1": {}}})
        backend.insert_one("apps", {"_id": "a2", "collaborators": {"acc2": {}}})

        found = list(backend.find("apps", {"collaborators.acc1": {"$exists": True}}))
        assert [doc["_id"] for doc in found] == ["a1"]

    def test_in_filter(self, backend):
        """Test $in filters."""
        for name in ["a", "b", "c"]:
            backend.insert_one("apps", {"_id": name, "name": name})

        found = list(backend.find("apps", {"name": {"$in": ["a", "c"]}}))
        assert sorted(doc["_id"] for doc in found) == ["a", "c"]

    def test_unsupported_operator(self, backend):
        """Test that unknown query operators are rejected."""
        backend.insert_one("apps", {"_id": "a1", "size": 3})
        with pytest.raises(InvalidError):
            list(backend.find("apps", {"size": {"$gt": 1}}))

    def test_set_and_unset(self, backend):
        """Test $set and $unset updates."""
        backend.insert_one("deployments", {"_id": "d1", "name": "A", "package": {"label": "v1"}})

        matched = backend.update_one(
            "deployments", {"_id": "d1"}, {"$set": {"name": "B"}, "$unset": {"package": ""}}
        )

        assert matched == 1
        assert backend.find_one("deployments", {"_id": "d1"}) == {"_id": "d1", "name": "B"}

    def test_update_no_match(self, backend):
        """Test update on a missing document."""
        assert backend.update_one("apps", {"_id": "none"}, {"$set": {"name": "B"}}) == 0

    def test_unsupported_update_operator(self, backend):
        """Test that unknown update operators are rejected."""
        with pytest.raises(InvalidError):
            backend.update_one("apps", {"_id": "a1"}, {"$inc": {"count": 1}})

    def test_delete_one_and_many(self, backend):
        """Test single and bulk deletes."""
        for i in range(3):
            backend.insert_one("deployments", {"_id": f"d{i}", "appId": "a1"})

        assert backend.delete_one("deployments", {"_id": "d0"}) == 1
        assert backend.delete_one("deployments", {"_id": "d0"}) == 0
        assert backend.delete_many("deployments", {"appId": "a1"}) == 2
        assert list(backend.find("deployments")) == []

    def test_sort_and_limit(self, backend):
        """Test sorting and limiting results."""
        for i, created in enumerate([30, 10, 20]):
            backend.insert_one("apps", {"_id": str(i), "createdTime": created})

        found = list(
            backend.find("apps", sort=[("createdTime", SortOrder.DESCENDING)], limit=2)
        )
        assert [doc["createdTime"] for doc in found] == [30, 20]
