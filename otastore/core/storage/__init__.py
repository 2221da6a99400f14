"""Storage abstractions for documents, blobs and the policies built on them."""

from otastore.core.storage.access_keys import AccessKeyStore
from otastore.core.storage.blob import BlobStorageBackend
from otastore.core.storage.blobs import BlobStore, Bucket
from otastore.core.storage.cdn import CloudFrontInvalidator
from otastore.core.storage.documents import DocumentStore
from otastore.core.storage.errors import (
    AlreadyExistsError,
    ConnectionFailedError,
    ErrorCode,
    ExpiredError,
    InvalidError,
    NotFoundError,
    OtherError,
    StorageError,
    TooLargeError,
    map_error,
)
from otastore.core.storage.history import PackageHistory
from otastore.core.storage.models import (
    UNSET,
    AccessKey,
    AccessKeyPointer,
    AccessKeyUpdate,
    Account,
    AccountUpdate,
    App,
    AppUpdate,
    BlobInfo,
    CollaboratorProperties,
    Deployment,
    DeploymentInfo,
    DeploymentUpdate,
    Package,
    Permission,
)
from otastore.core.storage.object import IndexDefinition, ObjectStorageBackend, SortOrder
from otastore.core.storage.registry import (
    BackendConfigError,
    BackendNotFoundError,
    BackendRegistry,
)
from otastore.core.storage.storage import Storage

__all__ = [
    # Facade and adapters
    "Storage",
    "DocumentStore",
    "BlobStore",
    "Bucket",
    "PackageHistory",
    "AccessKeyStore",
    "CloudFrontInvalidator",
    # Backend contracts
    "ObjectStorageBackend",
    "BlobStorageBackend",
    "IndexDefinition",
    "SortOrder",
    # Errors
    "ErrorCode",
    "StorageError",
    "ConnectionFailedError",
    "NotFoundError",
    "AlreadyExistsError",
    "TooLargeError",
    "ExpiredError",
    "InvalidError",
    "OtherError",
    "map_error",
    # Records
    "UNSET",
    "Account",
    "AccountUpdate",
    "App",
    "AppUpdate",
    "CollaboratorProperties",
    "Permission",
    "Deployment",
    "DeploymentUpdate",
    "DeploymentInfo",
    "Package",
    "BlobInfo",
    "AccessKey",
    "AccessKeyPointer",
    "AccessKeyUpdate",
    # Registry
    "BackendRegistry",
    "BackendConfigError",
    "BackendNotFoundError",
]
