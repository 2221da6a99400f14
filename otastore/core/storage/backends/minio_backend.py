"""MinIO backend implementation for blob storage.

Works against MinIO and any S3-compatible endpoint, including AWS S3.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from io import BytesIO

from minio import Minio
from minio.error import S3Error

from ..blob import BlobStorageBackend
from ..errors import ConnectionFailedError, NotFoundError, map_s3_error

logger = logging.getLogger(__name__)


class MinIOBackend(BlobStorageBackend):
    """Blob backend over a ``minio.Minio`` client bound to one bucket."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = True,
        region: str | None = None,
        prefix: str | None = None,
        client: Minio | None = None,
    ):
        """`prefix` is prepended to every key; `client` replaces the one built here."""
        self._bucket = bucket
        self._region = region
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""
        self._client = client or Minio(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def connect(self) -> None:
        """Create the bucket on first use; any failure means the store is unreachable."""
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket, location=self._region)
                logger.info(f"Bucket {self._bucket} created")
            else:
                logger.info(f"Bucket {self._bucket} already present")

        except Exception as e:
            raise ConnectionFailedError(f"Failed to connect to object store: {e}") from e

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        try:
            result = self._client.put_object(
                bucket_name=self._bucket,
                object_name=self._full_key(key),
                data=BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
                metadata=metadata,
            )

            logger.info(f"Wrote {self._bucket}/{key} ({len(data)} bytes, etag {result.etag})")
            return result.etag

        except Exception as e:
            raise map_s3_error(e) from e

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(self._bucket, self._full_key(key))
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        except Exception as e:
            raise map_s3_error(e) from e

    def delete(self, key: str) -> None:
        # S3 deletes succeed for missing keys
        if not self.exists(key):
            raise NotFoundError(f"Blob not found: {self._bucket}/{key}")
        try:
            self._client.remove_object(self._bucket, self._full_key(key))
            logger.info(f"Removed {self._bucket}/{key}")

        except Exception as e:
            raise map_s3_error(e) from e

    def exists(self, key: str) -> bool:
        try:
            self._client.stat_object(self._bucket, self._full_key(key))
            return True
        except S3Error as e:
            if e.code in ("NoSuchKey", "NotFound", "NoSuchObject"):
                return False
            raise map_s3_error(e) from e
        except Exception as e:
            raise map_s3_error(e) from e

    def generate_presigned_url(self, key: str, expiration: timedelta = timedelta(hours=1)) -> str:
        try:
            return self._client.presigned_get_object(
                bucket_name=self._bucket, object_name=self._full_key(key), expires=expiration
            )

        except Exception as e:
            raise map_s3_error(e) from e
