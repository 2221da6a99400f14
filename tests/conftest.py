from __future__ import annotations

from unittest.mock import Mock

import pytest

from otastore.core.storage.backends.filesystem_backend import FilesystemBackend
from otastore.core.storage.backends.memory_backend import MemoryBackend
from otastore.core.storage.blobs import BlobStore
from otastore.core.storage.cdn import CloudFrontInvalidator
from otastore.core.storage.documents import DocumentStore
from otastore.core.storage.models import (
    App,
    CollaboratorProperties,
    Deployment,
    Package,
    Permission,
)
from otastore.core.storage.storage import Storage


@pytest.fixture
def clean_env(monkeypatch):
    """Remove storage-related environment variables for the test."""
    for key in [
        "OTASTORE_BACKEND",
        "MONGODB_URI",
        "S3_ENDPOINT",
        "S3_SECURE",
        "AWS_REGION",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "CLOUDFRONT_DISTRIBUTION_ID",
        "CLOUDFRONT_DOMAIN",
        "BLOB_STORAGE_PATH",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def documents(memory_backend):
    """Document store over a fresh in-memory backend."""
    return DocumentStore(memory_backend)


@pytest.fixture
def packages_backend(tmp_path):
    return FilesystemBackend(base_path=tmp_path, bucket="storagev2")


@pytest.fixture
def history_backend(tmp_path):
    return FilesystemBackend(base_path=tmp_path, bucket="packagehistoryv1")


@pytest.fixture
def mock_cloudfront_client():
    """Mock boto3 CloudFront client accepting every invalidation."""
    client = Mock()
    client.create_invalidation.return_value = {"Invalidation": {"Id": "I2J0I21PCUYOIK"}}
    return client


@pytest.fixture
def cdn(mock_cloudfront_client):
    return CloudFrontInvalidator(
        distribution_id="E2QWRUHAPOMQZL",
        domain="d111111abcdef8.cloudfront.net",
        client=mock_cloudfront_client,
    )


@pytest.fixture
def blobs(packages_backend, history_backend):
    """Blob store over temporary directories, without a CDN."""
    return BlobStore(packages=packages_backend, history=history_backend)


@pytest.fixture
def blobs_with_cdn(packages_backend, history_backend, cdn):
    return BlobStore(packages=packages_backend, history=history_backend, cdn=cdn)


@pytest.fixture
def storage(documents, blobs):
    return Storage(documents, blobs)


@pytest.fixture
def sample_app():
    """App "a1" owned by account "acc1"."""
    return App(
        name="MyApp",
        id="a1",
        collaborators={"acc1": CollaboratorProperties(permission=Permission.OWNER.value)},
    )


@pytest.fixture
def sample_deployment():
    return Deployment(name="Production", key="K1", id="d1")


@pytest.fixture
def sample_package():
    return Package(
        app_version="1.0.0",
        blob_url="https://d111111abcdef8.cloudfront.net/abc123",
        description="First release",
        package_hash="abc123",
        size=2048,
        released_by="dev@example.com",
        release_method="Upload",
    )
