"""
Object store interface.

One ObjectStore instance addresses one bucket. Instances are stateless
after construction and are shared read-only by all migration workers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from s3migrate.exceptions import ServerSideCopyUnsupported


class ObjectStore(ABC):
    """
    Abstract base class for a bucket in an object store.

    Implementations must treat "key not found" in exists() as a plain
    False and raise ObjectStoreError for every other failure.

    Example:
        >>> if await source.exists(key) and not await destination.exists(key):
        ...     size = await source.stat_size(key)
        ...     await destination.write_stream(key, source.read_stream(key), size)
    """

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Name of the bucket this store addresses."""

    @property
    def name(self) -> str:
        """Human-readable description used in logs."""
        return self.bucket

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check whether an object exists.

        Args:
            key: Storage key.

        Returns:
            True if the object exists, False if the key is not found.

        Raises:
            ObjectStoreError: On any failure other than "not found".
        """

    @abstractmethod
    async def stat_size(self, key: str) -> int:
        """
        Get the size of an object in bytes.

        Raises:
            ObjectStoreError: If the object cannot be stat'ed.
        """

    @abstractmethod
    def read_stream(self, key: str, chunk_size: int) -> AsyncIterator[bytes]:
        """
        Stream an object's content.

        Args:
            key: Storage key.
            chunk_size: Maximum size of each yielded chunk.

        Yields:
            Chunks of the object's bytes, in order.
        """

    @abstractmethod
    async def write_stream(
        self,
        key: str,
        chunks: AsyncIterator[bytes],
        size: int,
    ) -> None:
        """
        Write an object from a stream of chunks.

        Args:
            key: Storage key.
            chunks: Object content.
            size: Total content length in bytes.

        Raises:
            ObjectStoreError: If the write fails.
        """

    async def server_side_copy(
        self,
        dest_key: str,
        source_bucket: str,
        source_key: str,
    ) -> None:
        """
        Copy an object into this bucket without streaming it through the client.

        Raises:
            ServerSideCopyUnsupported: If the store has no server-side copy.
            ObjectStoreError: If the copy fails.
        """
        raise ServerSideCopyUnsupported(self.bucket, dest_key)

    def supports_server_side_copy_from(self, source: ObjectStore) -> bool:
        """Whether server_side_copy() can read objects from `source`."""
        return False


__all__ = ["ObjectStore"]
