"""
Record feeder: drains the filtered cursor into the bounded work queue.

The feeder owns the cursor: it opens it, iterates it in the collection's
natural order and always closes it. Records are pushed with queue.put(),
which blocks while the queue is full; that blocking is the only flow
control between the cursor and the workers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from s3migrate.cancellation import CancellationToken
from s3migrate.exceptions import MigrationCancelled, QueryError, RecordDecodeError
from s3migrate.models import DEFAULT_BATCH_SIZE, DEFAULT_KEY_FIELD, MigrationRecord
from s3migrate.observability import ATTR_BATCH_SIZE, Tracer, create_tracer

logger = logging.getLogger(__name__)


class RecordFeeder:
    """
    Produces MigrationRecords from a document collection.

    The collection must provide `await count_documents(filter)` and
    `find(filter, batch_size=...)` returning an async-iterable cursor with
    an awaitable `close()` (the motor collection API).

    Attributes:
        _collection: Collection to query.
        _filter: Opaque query filter.
        _batch_size: Cursor page-size hint.
        _key_field: Document field holding the storage key.
        _cursor: Open cursor, None until open() is called.
    """

    def __init__(
        self,
        collection: Any,
        filter: Mapping[str, Any] | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        key_field: str = DEFAULT_KEY_FIELD,
        cancellation: CancellationToken | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self._collection = collection
        self._filter = dict(filter or {})
        self._batch_size = batch_size
        self._key_field = key_field
        self._cancellation = cancellation or CancellationToken()
        self._tracer = tracer or create_tracer(__name__, enable_tracing=False)
        self._cursor: Any = None
        self.fed = 0

    async def count(self) -> int:
        """
        Count the documents matching the filter.

        Raises:
            QueryError: If the count fails.
        """
        try:
            return int(await self._collection.count_documents(self._filter))
        except Exception as e:
            raise QueryError("count", str(e)) from e

    def open(self) -> None:
        """
        Open the cursor.

        Raises:
            QueryError: If the cursor cannot be opened.
        """
        if self._cursor is not None:
            return
        try:
            self._cursor = self._collection.find(self._filter, batch_size=self._batch_size)
        except Exception as e:
            raise QueryError("find", str(e)) from e

    async def close(self) -> None:
        cursor, self._cursor = self._cursor, None
        if cursor is None:
            return
        try:
            await cursor.close()
        except Exception as e:
            logger.warning("Error closing cursor: %s", e)

    async def feed(
        self,
        queue: asyncio.Queue[MigrationRecord],
        on_decode_error: Callable[[RecordDecodeError], None] | None = None,
        on_cursor_error: Callable[[QueryError], None] | None = None,
    ) -> int:
        """
        Push every decodable record into `queue`.

        Decode failures are logged, passed to `on_decode_error` and skipped.
        Feeding stops early when the run is cancelled, or when the cursor
        fails and `on_cursor_error` is given; records already pushed are
        left for the workers.

        Args:
            queue: Bounded queue shared with the workers.
            on_decode_error: Called for each undecodable document.
            on_cursor_error: Called once if the cursor fails mid-iteration.

        Returns:
            Number of records pushed.

        Raises:
            QueryError: If the cursor fails while iterating and no
                `on_cursor_error` callback is given.
        """
        self.open()
        with self._tracer.span("s3migrate.feeder.feed", {ATTR_BATCH_SIZE: self._batch_size}):
            try:
                cursor = aiter(self._cursor)
                while not self._cancellation.cancelled:
                    try:
                        document = await anext(cursor)
                    except StopAsyncIteration:
                        break
                    except Exception as e:
                        if on_cursor_error is None:
                            raise QueryError("iterate", str(e)) from e
                        logger.error(
                            "Error iterating records after %d records, stopping feed: %s",
                            self.fed,
                            e,
                        )
                        on_cursor_error(QueryError("iterate", str(e)))
                        break

                    try:
                        record = MigrationRecord.from_document(document, self._key_field)
                    except RecordDecodeError as e:
                        logger.error("Error decoding document: %s", e)
                        if on_decode_error is not None:
                            on_decode_error(e)
                        continue

                    try:
                        await self._cancellation.run(queue.put(record))
                    except MigrationCancelled:
                        break
                    self.fed += 1
            finally:
                await self.close()

        logger.debug("Feeder finished after %d records", self.fed)
        return self.fed


__all__ = ["RecordFeeder"]
