"""
MongoDB access for migration records.

DocumentStore is an explicit connection value: it is created by the caller,
passed to whatever needs a collection, and closed by the caller. There is
no process-wide connection handle.
"""

from __future__ import annotations

import logging
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from s3migrate.exceptions import StoreConnectionError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_MS = 10_000


class DocumentStore:
    """
    Connection to the MongoDB deployment holding migration records.

    Example:
        >>> store = await DocumentStore.connect("mongodb://localhost:27017")
        >>> collection = store.collection("storage", "objects")
        >>> ...
        >>> store.close()
    """

    def __init__(self, client: AsyncIOMotorClient) -> None:
        self._client = client

    @classmethod
    async def connect(cls, uri: str, **client_options: Any) -> DocumentStore:
        """
        Connect and verify the deployment answers a ping.

        Args:
            uri: MongoDB connection string.
            **client_options: Extra AsyncIOMotorClient options.

        Returns:
            Connected DocumentStore.

        Raises:
            StoreConnectionError: If the client cannot be created or the
                ping fails.
        """
        options = {"serverSelectionTimeoutMS": CONNECT_TIMEOUT_MS, **client_options}
        logger.info("Attempting to connect to MongoDB...")
        try:
            client = AsyncIOMotorClient(uri, **options)
        except (PyMongoError, ValueError, TypeError) as e:
            raise StoreConnectionError("MongoDB", str(e)) from e

        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            client.close()
            raise StoreConnectionError("MongoDB", str(e)) from e

        logger.info("Successfully connected to MongoDB.")
        return cls(client)

    def collection(self, database: str, name: str) -> AsyncIOMotorCollection:
        return self._client[database][name]

    def close(self) -> None:
        self._client.close()


__all__ = ["DocumentStore", "CONNECT_TIMEOUT_MS"]
