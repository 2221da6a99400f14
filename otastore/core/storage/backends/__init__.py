"""Storage backend implementations."""

from otastore.core.storage.backends.filesystem_backend import FilesystemBackend
from otastore.core.storage.backends.memory_backend import MemoryBackend
from otastore.core.storage.backends.minio_backend import MinIOBackend
from otastore.core.storage.backends.mongodb_backend import MongoDBBackend

__all__ = ["FilesystemBackend", "MemoryBackend", "MinIOBackend", "MongoDBBackend"]
