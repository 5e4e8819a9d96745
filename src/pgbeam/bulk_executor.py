"""
COPY Stream Bridge

Moves bytes between an HTTP body and a PostgreSQL COPY channel on one
checked-out connection, without buffering the payload.

- COPY TO STDOUT: chunks are yielded as the server produces them; the HTTP
  response pulls the next chunk only after sending the previous one.
- COPY FROM STDIN: each chunk read from the HTTP source is written into the
  COPY channel (and awaited) before the next chunk is read.

The bridge never parses the payload; PostgreSQL is the only interpreter of
the text/CSV/binary COPY format.
"""

from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable

import psycopg
import structlog

from .errors import TransferError

logger = structlog.get_logger()


async def pipe(
    source: AsyncIterable[bytes],
    write: Callable[[bytes], Awaitable[Any]],
) -> int:
    """
    Splice an async byte source into an async writer.

    Chunk N+1 is not read until write(chunk N) has completed, so at most one
    chunk is in flight. Returns the number of bytes written.
    """
    total_bytes = 0
    async for chunk in source:
        if not chunk:
            continue
        await write(chunk)
        total_bytes += len(chunk)
    return total_bytes


class BulkExecutor:
    """
    COPY execution on a single psycopg AsyncConnection.

    Attributes:
        rows_affected: Row count reported by the server after the last COPY
            (-1 until a COPY completes)
        bytes_transferred: Payload bytes moved by the last COPY
    """

    def __init__(self, connection: psycopg.AsyncConnection):
        self.connection = connection
        self.rows_affected = -1
        self.bytes_transferred = 0

    async def copy_out(self, sql: str) -> AsyncIterator[bytes]:
        """Execute COPY ... TO STDOUT, yielding payload chunks as they arrive."""
        logger.info("COPY TO STDOUT starting", statement=sql)
        self.bytes_transferred = 0

        try:
            async with self.connection.cursor() as cursor:
                async with cursor.copy(sql) as copy:
                    async for data in copy:
                        self.bytes_transferred += len(data)
                        yield bytes(data)
                self.rows_affected = cursor.rowcount

        except psycopg.Error as e:
            logger.error("COPY TO STDOUT failed",
                        statement=sql,
                        bytes_sent=self.bytes_transferred,
                        error=str(e))
            raise TransferError(str(e)) from e

        logger.info("COPY TO STDOUT complete",
                   rows=self.rows_affected,
                   bytes_sent=self.bytes_transferred)

    async def copy_in(self, sql: str, source: AsyncIterable[bytes]) -> int:
        """
        Execute COPY ... FROM STDIN fed from an async byte source.

        If the source raises, psycopg aborts the COPY (CopyFail) so nothing is
        committed, and the source's exception propagates unchanged.

        Raises:
            TransferError: PostgreSQL rejected the statement or the payload
        """
        logger.info("COPY FROM STDIN starting", statement=sql)
        self.bytes_transferred = 0

        async def write_chunk(chunk: bytes):
            await copy.write(chunk)
            self.bytes_transferred += len(chunk)

        try:
            async with self.connection.cursor() as cursor:
                async with cursor.copy(sql) as copy:
                    await pipe(source, write_chunk)
                self.rows_affected = cursor.rowcount

        except psycopg.Error as e:
            logger.error("COPY FROM STDIN failed",
                        statement=sql,
                        bytes_received=self.bytes_transferred,
                        error=str(e))
            raise TransferError(str(e)) from e

        logger.info("COPY FROM STDIN complete",
                   rows=self.rows_affected,
                   bytes_received=self.bytes_transferred)
        return self.rows_affected
