"""CloudFront cache invalidation for package blobs."""

from __future__ import annotations

import logging
import time

import boto3

from .errors import InvalidError, map_cdn_error

logger = logging.getLogger(__name__)


class CloudFrontInvalidator:
    """Submits invalidation batches to a CloudFront distribution.

    Calls are blocking; the blob store runs them in a worker thread.
    """

    def __init__(
        self,
        distribution_id: str,
        domain: str | None = None,
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        client=None,
    ):
        """Initialize the invalidator.

        Args:
            distribution_id: CloudFront distribution id
            domain: Public CDN domain (e.g. ``d1234abcd.cloudfront.net``); when
                unset, blob URLs fall back to presigned object-store URLs
            region: AWS region for the client
            access_key: AWS access key id; default credential chain when unset
            secret_key: AWS secret access key
            client: Pre-built boto3 CloudFront client, mainly for tests
        """
        if not distribution_id:
            raise InvalidError("CloudFront distribution id is required")
        self.distribution_id = distribution_id
        self.domain = domain or None
        self._client = client or boto3.client(
            "cloudfront",
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )

    def url_for(self, key: str) -> str | None:
        """Stable CDN URL for ``key``, or None when the domain is unknown."""
        if not self.domain:
            return None
        return f"https://{self.domain}/{key.lstrip('/')}"

    def invalidate(self, paths: list[str]) -> str:
        """Invalidate exactly ``paths`` in the edge caches.

        Returns:
            The CloudFront invalidation id
        """
        try:
            response = self._client.create_invalidation(
                DistributionId=self.distribution_id,
                InvalidationBatch={
                    "CallerReference": str(time.time_ns()),
                    "Paths": {"Quantity": len(paths), "Items": list(paths)},
                },
            )
        except Exception as e:
            raise map_cdn_error(e) from e

        invalidation_id = response.get("Invalidation", {}).get("Id", "")
        logger.info(
            f"Submitted CloudFront invalidation {invalidation_id} "
            f"for {len(paths)} path(s) on {self.distribution_id}"
        )
        return invalidation_id
