"""Tests for the async blob store adapter."""

from __future__ import annotations

from io import BytesIO, StringIO
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from otastore.core.storage.blobs import BlobStore, Bucket
from otastore.core.storage.errors import (
    ConnectionFailedError,
    InvalidError,
    NotFoundError,
    OtherError,
)


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


class TestBlobStoreSetup:
    """Test one-time setup of the blob store."""

    @pytest.mark.asyncio
    async def test_setup_writes_health_sentinels(self, blobs, packages_backend, history_backend):
        """Test that setup creates both buckets and their sentinels."""
        await blobs.ready()

        assert packages_backend.get("health") == b"health"
        assert history_backend.get("health") == b"health"

    @pytest.mark.asyncio
    async def test_setup_failure_surfaces_and_retries(self, history_backend):
        """Test that a failed connect is reported and retried on the next call."""
        packages = Mock()
        packages.connect.side_effect = [ConnectionFailedError("down"), None]
        store = BlobStore(packages=packages, history=history_backend)

        with pytest.raises(ConnectionFailedError):
            await store.ready()
        await store.ready()

        assert packages.connect.call_count == 2


class TestBlobStoreOperations:
    """Test blob put/get/delete across buckets."""

    @pytest.mark.asyncio
    async def test_put_and_get_bytes(self, blobs):
        """Test storing and reading bytes."""
        await blobs.put(Bucket.PACKAGES, "package/abc", b"zip")
        assert await blobs.get(Bucket.PACKAGES, "package/abc") == b"zip"

    @pytest.mark.asyncio
    async def test_buckets_are_separate(self, blobs):
        """Test that the history bucket does not see package blobs."""
        await blobs.put(Bucket.PACKAGES, "shared", b"package")

        with pytest.raises(NotFoundError):
            await blobs.get(Bucket.HISTORY, "shared")

    @pytest.mark.asyncio
    async def test_put_text(self, blobs):
        """Test storing text as UTF-8."""
        await blobs.put(Bucket.HISTORY, "packageHistory/d1", "[]")
        assert await blobs.get_text(Bucket.HISTORY, "packageHistory/d1") == "[]"

    @pytest.mark.asyncio
    async def test_put_file_object(self, blobs):
        """Test storing a binary stream."""
        await blobs.put(Bucket.PACKAGES, "blob", BytesIO(b"streamed"), length=8)
        assert await blobs.get(Bucket.PACKAGES, "blob") == b"streamed"

    @pytest.mark.asyncio
    async def test_put_async_iterable(self, blobs):
        """Test storing an async chunk stream."""
        await blobs.put(Bucket.PACKAGES, "blob", _chunks(b"ab", b"cd"), length=4)
        assert await blobs.get(Bucket.PACKAGES, "blob") == b"abcd"

    @pytest.mark.asyncio
    async def test_put_bytes_like(self, blobs):
        """Test storing bytearray and memoryview content."""
        await blobs.put(Bucket.PACKAGES, "array", bytearray(b"array"), length=5)
        await blobs.put(Bucket.PACKAGES, "view", memoryview(b"view"))

        assert await blobs.get(Bucket.PACKAGES, "array") == b"array"
        assert await blobs.get(Bucket.PACKAGES, "view") == b"view"

    @pytest.mark.asyncio
    async def test_put_text_file_object(self, blobs):
        """Test that a text-mode stream is stored as UTF-8."""
        await blobs.put(Bucket.HISTORY, "packageHistory/d1", StringIO('["\u00e9"]'), length=6)
        assert await blobs.get(Bucket.HISTORY, "packageHistory/d1") == '["\u00e9"]'.encode()

    @pytest.mark.asyncio
    async def test_put_unsupported_content(self, blobs):
        """Test that content that is neither bytes nor text is rejected."""
        with pytest.raises(InvalidError):
            await blobs.put(Bucket.PACKAGES, "blob", 42)

    @pytest.mark.asyncio
    async def test_get_text_rejects_binary(self, blobs):
        """Test that reading non-UTF-8 content as text raises InvalidError."""
        await blobs.put(Bucket.PACKAGES, "blob", b"\xff\xfe")

        with pytest.raises(InvalidError):
            await blobs.get_text(Bucket.PACKAGES, "blob")

    @pytest.mark.asyncio
    async def test_put_length_mismatch(self, blobs):
        """Test that a declared length that does not match is rejected."""
        with pytest.raises(InvalidError):
            await blobs.put(Bucket.PACKAGES, "blob", b"abc", length=10)

        assert not blobs.backend(Bucket.PACKAGES).exists("blob")

    @pytest.mark.asyncio
    async def test_get_missing(self, blobs):
        """Test that a missing blob raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await blobs.get(Bucket.PACKAGES, "missing")

    @pytest.mark.asyncio
    async def test_delete(self, blobs):
        """Test deleting a blob."""
        await blobs.put(Bucket.PACKAGES, "blob", b"x")
        await blobs.delete(Bucket.PACKAGES, "blob")

        with pytest.raises(NotFoundError):
            await blobs.delete(Bucket.PACKAGES, "blob")


class TestBlobStoreCdn:
    """Test CDN URLs and invalidation."""

    @pytest.mark.asyncio
    async def test_add_blob_invalidates_its_path(self, blobs_with_cdn, mock_cloudfront_client):
        """Test that adding a blob purges exactly that blob's path."""
        blob_id = await blobs_with_cdn.add_blob("abc123", b"zip", length=3)

        assert blob_id == "abc123"
        assert await blobs_with_cdn.get(Bucket.PACKAGES, "abc123") == b"zip"
        batch = mock_cloudfront_client.create_invalidation.call_args.kwargs["InvalidationBatch"]
        assert batch["Paths"]["Items"] == ["/abc123"]

    @pytest.mark.asyncio
    async def test_history_writes_do_not_invalidate(self, blobs_with_cdn, mock_cloudfront_client):
        """Test that history blobs never trigger invalidation."""
        await blobs_with_cdn.put(Bucket.HISTORY, "packageHistory/d1", "[]")
        mock_cloudfront_client.create_invalidation.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalidation_failure_keeps_blob(self, blobs_with_cdn, mock_cloudfront_client):
        """Test that a failed invalidation is raised after the write succeeded."""
        mock_cloudfront_client.create_invalidation.side_effect = ClientError(
            {"Error": {"Code": "TooManyInvalidationsInProgress", "Message": "slow down"}},
            "CreateInvalidation",
        )

        with pytest.raises(OtherError):
            await blobs_with_cdn.add_blob("abc123", b"zip")

        assert await blobs_with_cdn.get(Bucket.PACKAGES, "abc123") == b"zip"

    @pytest.mark.asyncio
    async def test_add_blob_without_cdn(self, blobs):
        """Test that adding a blob works with no CDN configured."""
        assert await blobs.add_blob("abc123", b"zip") == "abc123"

    @pytest.mark.asyncio
    async def test_blob_url_uses_cdn_domain(self, blobs_with_cdn):
        """Test that URLs point at the CDN when configured."""
        await blobs_with_cdn.add_blob("abc123", b"zip")

        url = await blobs_with_cdn.get_blob_url("abc123")

        assert url == "https://d111111abcdef8.cloudfront.net/abc123"

    @pytest.mark.asyncio
    async def test_blob_url_falls_back_to_presigned(self, blobs):
        """Test that URLs are presigned without a CDN."""
        await blobs.add_blob("abc123", b"zip")

        url = await blobs.get_blob_url("abc123")

        assert url.startswith("file://")
        assert url.endswith("/storagev2/abc123")

    @pytest.mark.asyncio
    async def test_invalidate_without_cdn_is_noop(self, blobs):
        """Test that invalidation silently does nothing without a CDN."""
        await blobs.invalidate(["/abc"])

    @pytest.mark.asyncio
    async def test_remove_blob(self, blobs):
        """Test removing a package blob."""
        await blobs.add_blob("abc123", b"zip")
        await blobs.remove_blob("abc123")

        with pytest.raises(NotFoundError):
            await blobs.get(Bucket.PACKAGES, "abc123")


class TestBlobStoreHealth:
    """Test blob store health checks."""

    @pytest.mark.asyncio
    async def test_healthy(self, blobs):
        """Test a healthy store."""
        await blobs.check_health()

    @pytest.mark.asyncio
    async def test_wrong_sentinel_content(self, blobs, history_backend):
        """Test that unexpected sentinel content fails the check."""
        await blobs.ready()
        history_backend.put("health", b"corrupted")

        with pytest.raises(ConnectionFailedError):
            await blobs.check_health()

    @pytest.mark.asyncio
    async def test_missing_sentinel(self, blobs, packages_backend):
        """Test that a missing sentinel fails the check."""
        await blobs.ready()
        packages_backend.delete("health")

        with pytest.raises(ConnectionFailedError):
            await blobs.check_health()
