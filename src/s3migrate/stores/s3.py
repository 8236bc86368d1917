"""
S3-compatible object store backed by aioboto3.

Example:
    >>> params = S3ConnectionParams(key="...", secret="...", region="us-east-1",
    ...                             bucket="assets", endpoint="s3.amazonaws.com")
    >>> async with S3ObjectStore(params) as store:
    ...     if await store.exists("objects/abc"):
    ...         size = await store.stat_size("objects/abc")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from s3migrate.exceptions import ObjectStoreError, StoreConnectionError
from s3migrate.stores.interface import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "s3.amazonaws.com"

# S3 rejects multipart parts smaller than 5 MiB (except the last one)
MULTIPART_PART_SIZE = 8 * 1024 * 1024

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


@dataclass(frozen=True)
class S3ConnectionParams:
    """
    Connection settings for one bucket.

    Attributes:
        key: Access key id.
        secret: Secret access key.
        region: Bucket region.
        bucket: Bucket name.
        endpoint: Host (or full URL) of the S3 endpoint. Hosts without a
            scheme are reached over HTTPS.
    """

    key: str
    secret: str
    region: str
    bucket: str
    endpoint: str = DEFAULT_ENDPOINT

    @property
    def endpoint_url(self) -> str:
        endpoint = self.endpoint or DEFAULT_ENDPOINT
        if "://" in endpoint:
            return endpoint
        return f"https://{endpoint}"

    def describe(self) -> str:
        return f"{self.bucket} ({self.region}, {self.endpoint or DEFAULT_ENDPOINT})"


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStore(ObjectStore):
    """
    ObjectStore for one bucket of an S3-compatible service.

    The aioboto3 client is opened when the store is entered as an async
    context manager and closed on exit. One store is shared by all workers.

    Attributes:
        _params: Connection settings.
        _client: Open aioboto3 S3 client (None until entered).
        _exit_stack: Owns the client context.
    """

    def __init__(
        self,
        params: S3ConnectionParams,
        *,
        session: aioboto3.Session | None = None,
        part_size: int = MULTIPART_PART_SIZE,
    ) -> None:
        self._params = params
        self._session = session or aioboto3.Session(
            aws_access_key_id=params.key or None,
            aws_secret_access_key=params.secret or None,
            region_name=params.region or None,
        )
        self._part_size = part_size
        self._client: Any = None
        self._exit_stack: AsyncExitStack | None = None

    @property
    def bucket(self) -> str:
        return self._params.bucket

    @property
    def name(self) -> str:
        return self._params.describe()

    @property
    def params(self) -> S3ConnectionParams:
        return self._params

    async def __aenter__(self) -> S3ObjectStore:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """
        Open the S3 client.

        Raises:
            StoreConnectionError: If the client cannot be constructed.
        """
        if self._client is not None:
            return
        stack = AsyncExitStack()
        try:
            self._client = await stack.enter_async_context(
                self._session.client(
                    "s3",
                    endpoint_url=self._params.endpoint_url,
                    region_name=self._params.region or None,
                )
            )
        except (BotoCoreError, ClientError, ValueError) as e:
            await stack.aclose()
            raise StoreConnectionError(f"S3 bucket {self.bucket}", str(e)) from e
        self._exit_stack = stack
        logger.debug("Opened S3 client for %s", self.name)

    async def close(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    def _require_client(self) -> Any:
        if self._client is None:
            raise StoreConnectionError(f"S3 bucket {self.bucket}", "client is not open")
        return self._client

    async def _head(self, key: str) -> dict[str, Any]:
        client = self._require_client()
        return await client.head_object(Bucket=self.bucket, Key=key)

    async def exists(self, key: str) -> bool:
        try:
            await self._head(key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise ObjectStoreError(self.bucket, key, "stat", str(e)) from e
        except BotoCoreError as e:
            raise ObjectStoreError(self.bucket, key, "stat", str(e)) from e
        return True

    async def stat_size(self, key: str) -> int:
        try:
            response = await self._head(key)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(self.bucket, key, "stat", str(e)) from e
        return int(response["ContentLength"])

    async def read_stream(self, key: str, chunk_size: int) -> AsyncIterator[bytes]:
        client = self._require_client()
        try:
            response = await client.get_object(Bucket=self.bucket, Key=key)
            async with response["Body"] as body:
                async for chunk in body.iter_chunks(chunk_size):
                    if chunk:
                        yield chunk
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(self.bucket, key, "read", str(e)) from e

    async def write_stream(
        self,
        key: str,
        chunks: AsyncIterator[bytes],
        size: int,
    ) -> None:
        if size <= self._part_size:
            await self._put_single(key, chunks, size)
        else:
            await self._put_multipart(key, chunks)

    async def _put_single(self, key: str, chunks: AsyncIterator[bytes], size: int) -> None:
        client = self._require_client()
        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)
        if len(buffer) != size:
            raise ObjectStoreError(
                self.bucket, key, "write", f"expected {size} bytes, read {len(buffer)}"
            )
        try:
            await client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=bytes(buffer),
                ContentLength=size,
            )
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(self.bucket, key, "write", str(e)) from e

    async def _put_multipart(self, key: str, chunks: AsyncIterator[bytes]) -> None:
        client = self._require_client()
        try:
            upload = await client.create_multipart_upload(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(self.bucket, key, "write", str(e)) from e
        upload_id = upload["UploadId"]

        parts: list[dict[str, Any]] = []
        buffer = bytearray()

        async def flush() -> None:
            part_number = len(parts) + 1
            response = await client.upload_part(
                Bucket=self.bucket,
                Key=key,
                PartNumber=part_number,
                UploadId=upload_id,
                Body=bytes(buffer),
            )
            parts.append({"ETag": response["ETag"], "PartNumber": part_number})
            buffer.clear()

        try:
            async for chunk in chunks:
                buffer.extend(chunk)
                if len(buffer) >= self._part_size:
                    await flush()
            if buffer or not parts:
                await flush()
            await client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except BaseException as e:
            try:
                await client.abort_multipart_upload(
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                )
            except (BotoCoreError, ClientError) as abort_error:
                logger.error(
                    "Error aborting multipart upload of %s in %s: %s",
                    key,
                    self.bucket,
                    abort_error,
                )
            if isinstance(e, (BotoCoreError, ClientError)):
                raise ObjectStoreError(self.bucket, key, "write", str(e)) from e
            raise

        logger.debug("Uploaded %s to %s in %d parts", key, self.bucket, len(parts))

    async def server_side_copy(
        self,
        dest_key: str,
        source_bucket: str,
        source_key: str,
    ) -> None:
        client = self._require_client()
        try:
            await client.copy(
                CopySource={"Bucket": source_bucket, "Key": source_key},
                Bucket=self.bucket,
                Key=dest_key,
            )
        except (BotoCoreError, ClientError) as e:
            raise ObjectStoreError(self.bucket, dest_key, "server-side copy", str(e)) from e

    def supports_server_side_copy_from(self, source: ObjectStore) -> bool:
        if not isinstance(source, S3ObjectStore):
            return False
        return (
            source.params.endpoint_url == self._params.endpoint_url
            and source.params.key == self._params.key
        )


__all__ = [
    "DEFAULT_ENDPOINT",
    "MULTIPART_PART_SIZE",
    "S3ConnectionParams",
    "S3ObjectStore",
]
