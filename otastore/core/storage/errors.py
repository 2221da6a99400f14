"""Storage error taxonomy and translation of backend failures.

Every adapter operation either succeeds or raises exactly one
:class:`StorageError` subclass. Backend classes call the ``map_*_error``
helpers at the point where a client library raises, so pymongo, MinIO,
urllib3 and botocore exceptions never cross the adapter boundary.
"""

from __future__ import annotations

import logging
from enum import Enum

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from minio.error import S3Error
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    DocumentTooLarge,
    DuplicateKeyError,
    ExecutionTimeout,
    InvalidDocument,
    OperationFailure,
    PyMongoError,
)
from urllib3.exceptions import HTTPError as Urllib3HTTPError

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Storage error codes shared by every backend."""

    CONNECTION_FAILED = 0
    NOT_FOUND = 1
    ALREADY_EXISTS = 2
    TOO_LARGE = 3
    EXPIRED = 4
    INVALID = 5
    OTHER = 99


class StorageError(Exception):
    """Base exception for storage errors."""

    code: ErrorCode = ErrorCode.OTHER

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code.name.replace("_", " ").capitalize())
        self.message = str(self.args[0])


class ConnectionFailedError(StorageError):
    """Raised when a backing store cannot be reached or fails a health check."""

    code = ErrorCode.CONNECTION_FAILED


class NotFoundError(StorageError):
    """Raised when an entity or blob does not exist."""

    code = ErrorCode.NOT_FOUND


class AlreadyExistsError(StorageError):
    """Raised when an insert collides with a key or unique index."""

    code = ErrorCode.ALREADY_EXISTS


class TooLargeError(StorageError):
    """Raised when a document or blob exceeds the backend's size limit."""

    code = ErrorCode.TOO_LARGE


class ExpiredError(StorageError):
    """Raised when an access key is used after its expiry."""

    code = ErrorCode.EXPIRED


class InvalidError(StorageError):
    """Raised when the request is rejected as malformed or unauthorized."""

    code = ErrorCode.INVALID


class OtherError(StorageError):
    """Raised for backend failures that fit no other code."""

    code = ErrorCode.OTHER


_ERROR_CLASSES: dict[ErrorCode, type[StorageError]] = {
    cls.code: cls
    for cls in (
        ConnectionFailedError,
        NotFoundError,
        AlreadyExistsError,
        TooLargeError,
        ExpiredError,
        InvalidError,
        OtherError,
    )
}


def storage_error(code: ErrorCode, message: str | None = None) -> StorageError:
    """Create the storage error matching ``code``."""
    return _ERROR_CLASSES[code](message)


_S3_NOT_FOUND = {"NoSuchKey", "NoSuchBucket", "NotFound", "ResourceNotFound", "NoSuchObject"}
_S3_INVALID = {"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch", "InvalidBucketName"}
_S3_CONNECTION = {"RequestTimeout", "SlowDown", "ServiceUnavailable"}

_CDN_NOT_FOUND = {"NoSuchDistribution", "NoSuchInvalidation"}
_CDN_INVALID = {"AccessDenied", "InvalidArgument", "MissingBody", "BatchTooLarge"}


def map_mongo_error(error: Exception) -> StorageError:
    """Translate a pymongo exception into the storage taxonomy."""
    if isinstance(error, StorageError):
        return error
    message = str(error)
    if isinstance(error, DuplicateKeyError):
        return AlreadyExistsError(message)
    # ExecutionTimeout is an OperationFailure, so it must be checked first
    if isinstance(error, (ConnectionFailure, AutoReconnect, ExecutionTimeout)):
        return ConnectionFailedError(message)
    if isinstance(error, DocumentTooLarge):
        return TooLargeError(message)
    if isinstance(error, (InvalidDocument, OperationFailure)):
        return InvalidError(message)
    if isinstance(error, (OSError, TimeoutError)):
        return ConnectionFailedError(message)
    if not isinstance(error, PyMongoError):
        logger.debug(f"Unexpected non-pymongo error: {error!r}")
    return OtherError(message)


def map_s3_error(error: Exception) -> StorageError:
    """Translate a MinIO/S3 or transport exception into the storage taxonomy."""
    if isinstance(error, StorageError):
        return error
    message = str(error)
    if isinstance(error, S3Error):
        if error.code in _S3_NOT_FOUND:
            return NotFoundError(message)
        if error.code == "EntityTooLarge":
            return TooLargeError(message)
        if error.code in _S3_INVALID:
            return InvalidError(message)
        if error.code in _S3_CONNECTION:
            return ConnectionFailedError(message)
        return OtherError(message)
    if isinstance(error, (Urllib3HTTPError, OSError, TimeoutError)):
        return ConnectionFailedError(message)
    return OtherError(message)


def map_cdn_error(error: Exception) -> StorageError:
    """Translate a botocore exception raised by the CDN client."""
    if isinstance(error, StorageError):
        return error
    message = str(error)
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        if code in _CDN_NOT_FOUND:
            return NotFoundError(message)
        if code in _CDN_INVALID:
            return InvalidError(message)
        return OtherError(message)
    if isinstance(error, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        return ConnectionFailedError(message)
    if isinstance(error, BotoCoreError):
        return OtherError(message)
    if isinstance(error, (OSError, TimeoutError)):
        return ConnectionFailedError(message)
    return OtherError(message)


def map_error(error: Exception) -> StorageError:
    """Translate any backend exception, dispatching on its origin."""
    if isinstance(error, StorageError):
        return error
    if isinstance(error, PyMongoError):
        return map_mongo_error(error)
    if isinstance(error, (ClientError, BotoCoreError)):
        return map_cdn_error(error)
    return map_s3_error(error)
