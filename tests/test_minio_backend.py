"""Tests for MinIO backend implementation."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import Mock, patch

import pytest
from minio.error import S3Error
from urllib3.exceptions import MaxRetryError

from otastore.core.storage.backends.minio_backend import MinIOBackend
from otastore.core.storage.errors import (
    ConnectionFailedError,
    InvalidError,
    NotFoundError,
    TooLargeError,
)


def _s3_error(code: str, resource: str = "/storagev2/blob") -> S3Error:
    return S3Error(
        code=code,
        message=code,
        resource=resource,
        request_id="",
        host_id="",
        response=None,
    )


class TestMinIOBackendInit:
    """Test MinIO backend initialization and connection."""

    @patch("otastore.core.storage.backends.minio_backend.Minio")
    def test_client_construction(self, mock_minio_class):
        """Test that the client gets endpoint, credentials and region."""
        MinIOBackend(
            endpoint="s3.amazonaws.com",
            access_key="key",
            secret_key="secret",
            bucket="storagev2",
            region="us-east-1",
        )

        mock_minio_class.assert_called_once_with(
            endpoint="s3.amazonaws.com",
            access_key="key",
            secret_key="secret",
            secure=True,
            region="us-east-1",
        )

    @patch("otastore.core.storage.backends.minio_backend.Minio")
    def test_construction_does_not_touch_network(self, mock_minio_class):
        """Test that the bucket is only checked on connect."""
        MinIOBackend(endpoint="localhost:9000", access_key="k", secret_key="s", bucket="b")
        mock_minio_class.return_value.bucket_exists.assert_not_called()

    def test_connect_creates_missing_bucket(self):
        """Test that connect creates the bucket if it doesn't exist."""
        client = Mock()
        client.bucket_exists.return_value = False
        backend = MinIOBackend("localhost:9000", "k", "s", "storagev2", region="us-west-2", client=client)

        backend.connect()

        client.bucket_exists.assert_called_once_with("storagev2")
        client.make_bucket.assert_called_once_with("storagev2", location="us-west-2")

    def test_connect_with_existing_bucket(self):
        """Test connect with an existing bucket."""
        client = Mock()
        client.bucket_exists.return_value = True
        backend = MinIOBackend("localhost:9000", "k", "s", "storagev2", client=client)

        backend.connect()

        client.make_bucket.assert_not_called()

    def test_connect_failure(self):
        """Test that connection problems raise ConnectionFailedError."""
        client = Mock()
        client.bucket_exists.side_effect = MaxRetryError(None, "/storagev2", "refused")
        backend = MinIOBackend("localhost:9000", "k", "s", "storagev2", client=client)

        with pytest.raises(ConnectionFailedError):
            backend.connect()


class TestMinIOBackendOperations:
    """Test MinIO backend blob operations."""

    @pytest.fixture
    def client(self):
        return Mock()

    @pytest.fixture
    def backend(self, client):
        return MinIOBackend("localhost:9000", "k", "s", "storagev2", client=client)

    def test_put(self, backend, client):
        """Test storing bytes with a known length."""
        client.put_object.return_value = Mock(etag="abc123")

        etag = backend.put("package/abc", b"zip data", content_type="application/zip")

        assert etag == "abc123"
        call_args = client.put_object.call_args
        assert call_args.kwargs["bucket_name"] == "storagev2"
        assert call_args.kwargs["object_name"] == "package/abc"
        assert call_args.kwargs["length"] == len(b"zip data")
        assert call_args.kwargs["data"].read() == b"zip data"
        assert call_args.kwargs["content_type"] == "application/zip"

    def test_put_default_content_type(self, backend, client):
        """Test the default content type."""
        client.put_object.return_value = Mock(etag="e")
        backend.put("blob", b"x")
        assert client.put_object.call_args.kwargs["content_type"] == "application/octet-stream"

    def test_put_with_prefix(self, client):
        """Test that a configured prefix is prepended to keys."""
        client.put_object.return_value = Mock(etag="e")
        backend = MinIOBackend("localhost:9000", "k", "s", "b", prefix="staging/", client=client)

        backend.put("package/abc", b"x")

        assert client.put_object.call_args.kwargs["object_name"] == "staging/package/abc"

    def test_put_too_large(self, backend, client):
        """Test that EntityTooLarge maps to TooLargeError."""
        client.put_object.side_effect = _s3_error("EntityTooLarge")

        with pytest.raises(TooLargeError):
            backend.put("blob", b"x")

    def test_put_access_denied(self, backend, client):
        """Test that AccessDenied maps to InvalidError."""
        client.put_object.side_effect = _s3_error("AccessDenied")

        with pytest.raises(InvalidError):
            backend.put("blob", b"x")

    def test_get(self, backend, client):
        """Test retrieving blob data releases the connection."""
        response = Mock()
        response.read.return_value = b"retrieved data"
        client.get_object.return_value = response

        assert backend.get("blob") == b"retrieved data"
        client.get_object.assert_called_once_with("storagev2", "blob")
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_get_not_found(self, backend, client):
        """Test getting a missing blob."""
        client.get_object.side_effect = _s3_error("NoSuchKey")

        with pytest.raises(NotFoundError):
            backend.get("blob")

    def test_delete(self, backend, client):
        """Test deleting an existing blob."""
        backend.delete("blob")

        client.stat_object.assert_called_once_with("storagev2", "blob")
        client.remove_object.assert_called_once_with("storagev2", "blob")

    def test_delete_missing(self, backend, client):
        """Test that deleting a missing blob raises NotFoundError."""
        client.stat_object.side_effect = _s3_error("NoSuchKey")

        with pytest.raises(NotFoundError):
            backend.delete("blob")
        client.remove_object.assert_not_called()

    def test_exists(self, backend, client):
        """Test existence checks."""
        assert backend.exists("blob") is True

        client.stat_object.side_effect = _s3_error("NoSuchKey")
        assert backend.exists("blob") is False

    def test_exists_propagates_other_errors(self, backend, client):
        """Test that non-404 failures are not reported as missing."""
        client.stat_object.side_effect = _s3_error("AccessDenied")

        with pytest.raises(InvalidError):
            backend.exists("blob")

    def test_presigned_url(self, backend, client):
        """Test presigned URL generation."""
        client.presigned_get_object.return_value = "https://s3/storagev2/blob?sig"

        url = backend.generate_presigned_url("blob", expiration=timedelta(minutes=5))

        assert url == "https://s3/storagev2/blob?sig"
        client.presigned_get_object.assert_called_once_with(
            bucket_name="storagev2", object_name="blob", expires=timedelta(minutes=5)
        )
