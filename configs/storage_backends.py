"""Storage backend configuration.

This module defines the CONFIGURATION dict which maps backend names to their
connection parameters. The storage facade uses four names:

    documents   accounts, apps, deployments and access keys
    packages    package, manifest and diff blobs (bucket "storagev2")
    history     per-deployment package history (bucket "packagehistoryv1")
    cdn         CloudFront distribution in front of the package bucket

Example usage:
    from otastore import Storage

    storage = Storage.from_config()

Environment overrides:
    MONGODB_URI                   document store (default mongodb://localhost:27017/codepush)
    S3_ENDPOINT, S3_SECURE        S3-compatible endpoint (default s3.amazonaws.com)
    AWS_REGION                    default us-east-1
    AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY
    CLOUDFRONT_DISTRIBUTION_ID    CDN invalidation is disabled when unset
    CLOUDFRONT_DOMAIN             blob URLs fall back to presigned URLs when unset

    # Run against an in-memory document store and local directories
    export OTASTORE_BACKEND=local

Configuration inheritance:
    "history": {
        "__inherits__": "packages",   # same endpoint and credentials
        "bucket": "packagehistoryv1", # override only the bucket
    }
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from otastore.core.utils.env import load_env_file_if_present

load_env_file_if_present()  # Load .env file if present
PROJECT_ROOT = Path(__file__).resolve().parents[1]

PACKAGES_BUCKET = "storagev2"
HISTORY_BUCKET = "packagehistoryv1"


def _resolve_default_base_path() -> Path:
    """Return the default filesystem storage root."""
    configured_path = os.environ.get("BLOB_STORAGE_PATH")
    if configured_path:
        return Path(configured_path).expanduser()

    return PROJECT_ROOT / "var" / "blob_storage"


def _is_local() -> bool:
    return os.getenv("OTASTORE_BACKEND", "").strip().lower() == "local"


def _build_documents_config() -> dict[str, Any]:
    if _is_local():
        return {"type": "memory"}
    return {
        "type": "mongodb",
        "uri": os.getenv("MONGODB_URI", "mongodb://localhost:27017/codepush"),
    }


def _build_packages_config() -> dict[str, Any]:
    if _is_local():
        return {
            "type": "filesystem",
            "base_path": str(_resolve_default_base_path()),
            "bucket": PACKAGES_BUCKET,
        }

    secure_value = os.getenv("S3_SECURE")
    secure = True
    if secure_value is not None:
        secure = secure_value.strip().lower() in {"1", "true", "yes", "on"}

    return {
        "type": "minio",
        "endpoint": os.getenv("S3_ENDPOINT", "s3.amazonaws.com"),
        "access_key": os.getenv("AWS_ACCESS_KEY_ID", ""),
        "secret_key": os.getenv("AWS_SECRET_ACCESS_KEY", ""),
        "region": os.getenv("AWS_REGION", "us-east-1"),
        "bucket": PACKAGES_BUCKET,
        "secure": secure,
    }


CONFIGURATION = {
    "documents": _build_documents_config(),
    "packages": _build_packages_config(),
    "history": {
        "__inherits__": "packages",
        "bucket": HISTORY_BUCKET,
    },
    "cdn": {
        "type": "cloudfront",
        "distribution_id": os.getenv("CLOUDFRONT_DISTRIBUTION_ID", ""),
        "domain": os.getenv("CLOUDFRONT_DOMAIN", ""),
        "region": os.getenv("AWS_REGION", "us-east-1"),
        "access_key": os.getenv("AWS_ACCESS_KEY_ID", ""),
        "secret_key": os.getenv("AWS_SECRET_ACCESS_KEY", ""),
    },
}
