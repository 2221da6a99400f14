"""Backend registry for the named storage backends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from otastore.core.storage.backends.filesystem_backend import FilesystemBackend
from otastore.core.storage.backends.memory_backend import MemoryBackend
from otastore.core.storage.backends.minio_backend import MinIOBackend
from otastore.core.storage.backends.mongodb_backend import MongoDBBackend
from otastore.core.storage.blob import BlobStorageBackend
from otastore.core.storage.cdn import CloudFrontInvalidator
from otastore.core.storage.object import ObjectStorageBackend
from otastore.core.utils.config import load_and_resolve_config

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_MODULE = "configs.storage_backends"


class BackendConfigError(Exception):
    """A configuration entry is missing its type or required fields."""

    pass


class BackendNotFoundError(Exception):
    """No configuration entry exists under the requested name."""

    pass


def _require(config: dict[str, Any], backend_type: str, *required: str) -> None:
    missing = [name for name in required if not config.get(name)]
    if missing:
        raise BackendConfigError(
            f"{backend_type} backend missing required fields: {', '.join(missing)}"
        )


class BackendRegistry:
    """Resolves backend names to configured backend instances.

    Each name maps to a config dict with a ``"type"`` key. Document backends
    are ``mongodb`` and ``memory``, blob backends ``minio`` and
    ``filesystem``, and the CDN is ``cloudfront``. Instances are created
    once per name and cached.

    Examples:
        >>> registry = BackendRegistry()
        >>> documents = registry.get_document_backend("documents")
        >>> packages = registry.get_blob_backend("packages")
    """

    def __init__(self, configuration: dict[str, dict[str, Any]] | None = None):
        """Build a registry over resolved configuration entries.

        Args:
            configuration: Resolved backend configuration. If None, loads and
                resolves ``configs/storage_backends.py``
        """
        if configuration is None:
            configuration = load_and_resolve_config(
                DEFAULT_CONFIG_MODULE, config_name="CONFIGURATION", default={}
            )
        self._config = configuration
        self._cache: dict[str, Any] = {}

    def get_config(self, name: str) -> dict[str, Any]:
        """Return the resolved configuration for ``name``.

        Raises:
            BackendNotFoundError: If the name is not configured
        """
        if name not in self._config:
            available = ", ".join(self._config.keys())
            raise BackendNotFoundError(
                f"Backend '{name}' not found in configuration. "
                f"Available backends: {available or 'none'}"
            )
        return self._config[name]

    def has_backend(self, name: str) -> bool:
        return name in self._config

    def list_backends(self) -> list[str]:
        return list(self._config.keys())

    def create_document_backend(self, config: dict[str, Any]) -> ObjectStorageBackend:
        """Create a document backend instance from configuration.

        Raises:
            BackendConfigError: If configuration is invalid
        """
        backend_type = config.get("type")
        if not backend_type:
            raise BackendConfigError("Backend configuration must specify 'type'")

        if backend_type == "mongodb":
            _require(config, "MongoDB", "uri")
            return MongoDBBackend(uri=config["uri"], database=config.get("database"))
        elif backend_type == "memory":
            return MemoryBackend()
        else:
            raise BackendConfigError(f"Unknown document backend type: {backend_type}")

    def create_blob_backend(self, config: dict[str, Any]) -> BlobStorageBackend:
        """Create a blob backend instance from configuration.

        Raises:
            BackendConfigError: If configuration is invalid
        """
        backend_type = config.get("type")
        if not backend_type:
            raise BackendConfigError("Backend configuration must specify 'type'")

        if backend_type == "filesystem":
            _require(config, "Filesystem", "base_path", "bucket")
            return FilesystemBackend(base_path=Path(config["base_path"]), bucket=config["bucket"])
        elif backend_type == "minio":
            _require(config, "MinIO", "endpoint", "access_key", "secret_key", "bucket")
            return MinIOBackend(
                endpoint=config["endpoint"],
                access_key=config["access_key"],
                secret_key=config["secret_key"],
                bucket=config["bucket"],
                secure=config.get("secure", True),
                region=config.get("region"),
                prefix=config.get("prefix"),
            )
        else:
            raise BackendConfigError(f"Unknown blob backend type: {backend_type}")

    def create_cdn(self, config: dict[str, Any]) -> CloudFrontInvalidator | None:
        """Create the CDN invalidator; None when no distribution is configured.

        Raises:
            BackendConfigError: If configuration is invalid
        """
        backend_type = config.get("type")
        if backend_type != "cloudfront":
            raise BackendConfigError(f"Unknown CDN type: {backend_type}")
        if not config.get("distribution_id"):
            return None
        return CloudFrontInvalidator(
            distribution_id=config["distribution_id"],
            domain=config.get("domain"),
            region=config.get("region"),
            access_key=config.get("access_key") or None,
            secret_key=config.get("secret_key") or None,
        )

    def _get(self, name: str, factory) -> Any:
        if name not in self._cache:
            self._cache[name] = factory(self.get_config(name))
            logger.info(f"Created backend for '{name}' ({self._config[name].get('type')})")
        return self._cache[name]

    def get_document_backend(self, name: str = "documents") -> ObjectStorageBackend:
        return self._get(name, self.create_document_backend)

    def get_blob_backend(self, name: str) -> BlobStorageBackend:
        return self._get(name, self.create_blob_backend)

    def get_cdn(self, name: str = "cdn") -> CloudFrontInvalidator | None:
        """Return the CDN invalidator, or None when the CDN is not configured."""
        if not self.has_backend(name):
            return None
        return self._get(name, self.create_cdn)

    def clear_cache(self) -> None:
        """Forget cached instances so the next lookup builds fresh ones."""
        self._cache.clear()
