"""Object store clients."""

from s3migrate.stores.interface import ObjectStore
from s3migrate.stores.s3 import (
    DEFAULT_ENDPOINT,
    MULTIPART_PART_SIZE,
    S3ConnectionParams,
    S3ObjectStore,
)

__all__ = [
    "ObjectStore",
    "S3ObjectStore",
    "S3ConnectionParams",
    "DEFAULT_ENDPOINT",
    "MULTIPART_PART_SIZE",
]
