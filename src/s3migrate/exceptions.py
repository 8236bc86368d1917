"""
Exceptions raised by the s3migrate package.

Exception Hierarchy:
    S3MigrateError (base)
    +-- ConfigurationError          (fatal)
    +-- StoreConnectionError        (fatal)
    +-- QueryError                  (fatal)
    +-- RecordDecodeError           (per record)
    +-- ObjectStoreError            (per record)
    |   +-- ServerSideCopyUnsupported
    +-- CopyError                   (per record)
    +-- MigrationCancelled          (per record)
        +-- RateLimitCancelled

Fatal errors abort a run before or without processing records and surface
to the caller. Per-record errors are caught by the copy executor, logged
with the offending storage key and counted in the run statistics.
"""

from __future__ import annotations

from typing import Any


class S3MigrateError(Exception):
    """Base exception for the s3migrate package."""

    pass


class ConfigurationError(S3MigrateError):
    """Raised when the migration configuration is invalid."""

    pass


class StoreConnectionError(S3MigrateError):
    """Raised when a database or object store client cannot be constructed."""

    def __init__(self, store: str, message: str) -> None:
        self.store = store
        super().__init__(f"Failed to connect to {store}: {message}")


class QueryError(S3MigrateError):
    """Raised when counting or iterating the record query fails."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"Query {operation} failed: {message}")


class RecordDecodeError(S3MigrateError):
    """Raised when a database document cannot be decoded into a record."""

    def __init__(self, document_id: Any, message: str) -> None:
        self.document_id = document_id
        super().__init__(f"Error decoding document {document_id}: {message}")


class ObjectStoreError(S3MigrateError):
    """Raised when an object store operation fails for a key."""

    def __init__(self, bucket: str, key: str, operation: str, message: str) -> None:
        self.bucket = bucket
        self.key = key
        self.operation = operation
        super().__init__(f"{operation} of {key} in bucket {bucket} failed: {message}")


class ServerSideCopyUnsupported(ObjectStoreError):
    """Raised when a store cannot perform a server-side copy."""

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(bucket, key, "server-side copy", "not supported by this store")


class CopyError(S3MigrateError):
    """Raised when transferring an object to the destination fails."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"Error copying object {key}: {message}")


class MigrationCancelled(S3MigrateError):
    """Raised inside a run once its cancellation signal has fired."""

    def __init__(self, message: str = "migration cancelled") -> None:
        super().__init__(message)


class RateLimitCancelled(MigrationCancelled):
    """Raised when a rate limiter wait is interrupted by cancellation."""

    def __init__(self) -> None:
        super().__init__("rate limiter wait cancelled")


__all__ = [
    "S3MigrateError",
    "ConfigurationError",
    "StoreConnectionError",
    "QueryError",
    "RecordDecodeError",
    "ObjectStoreError",
    "ServerSideCopyUnsupported",
    "CopyError",
    "MigrationCancelled",
    "RateLimitCancelled",
]
