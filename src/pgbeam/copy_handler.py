"""
COPY Transfer Orchestration

Runs one export or import per HTTP request:

1. Build and validate the COPY statement (no connection held yet)
2. Acquire a pooled connection
3. Stream bytes through BulkExecutor
4. Release the connection, exactly once, on every exit path

Nothing is retried. Failures surface as PgBeamError subclasses whose
status_code becomes the HTTP status.
"""

import functools
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, Optional

import httpx
import structlog

from .bulk_executor import BulkExecutor
from .errors import UpstreamError, ValidationError
from .sql_builder import (
    CopyFormat,
    QueryParams,
    build_export_command,
    build_import_command,
    get_param,
)

logger = structlog.get_logger()

# Parameters consumed by the relay itself and never forwarded upstream
RELAY_PARAMS = ("host", "to")

# Bytes of a non-200 upstream body kept for the error message
ERROR_BODY_LIMIT = 64 * 1024


async def upstream_error(response: httpx.Response) -> UpstreamError:
    """Build the error for a non-200 upstream from a bounded prefix of its body."""
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) >= ERROR_BODY_LIMIT:
            break
    text = bytes(body[:ERROR_BODY_LIMIT]).decode("utf-8", errors="replace")

    logger.error("Upstream responded with error",
                host=str(response.url),
                status=response.status_code,
                body=text[:200])
    return UpstreamError(
        f"host responded {response.status_code}: {text}",
        upstream_status=response.status_code,
    )


class ExportStream:
    """
    Async byte stream for one COPY TO STDOUT.

    Owns the checked-out connection until the stream is exhausted or closed.
    aclose() is idempotent, so the connection is released exactly once.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        release: Callable[[], Awaitable[None]],
        copy_format: CopyFormat = CopyFormat.TEXT,
    ):
        self.copy_format = copy_format
        self._chunks = chunks
        self._release = release
        self._first: Optional[bytes] = None
        self._closed = False

    @property
    def media_type(self) -> str:
        return self.copy_format.media_type

    @property
    def closed(self) -> bool:
        return self._closed

    async def prime(self):
        """Pull the first chunk before any response bytes are sent."""
        self._first = await anext(self._chunks, None)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            if self._first:
                first, self._first = self._first, None
                yield first
            async for chunk in self._chunks:
                yield chunk
        except Exception as e:
            logger.error("Export stream ended short", error=str(e))
            raise
        finally:
            await self.aclose()

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        try:
            await self._chunks.aclose()
        finally:
            await self._release()


class CopyHandler:
    """
    Orchestrates COPY transfers between HTTP and PostgreSQL.

    - Export: COPY (filtered table) TO STDOUT streamed into the HTTP response
    - Relay import: fetch a COPY stream from another host, COPY FROM STDIN
    - Body import: COPY FROM STDIN fed from the inbound request body
    """

    def __init__(self, pool, http_client: httpx.AsyncClient):
        self.pool = pool
        self.http_client = http_client

    async def export_table(self, params: QueryParams) -> ExportStream:
        """
        Start a COPY TO STDOUT for the requested table.

        Returns:
            ExportStream primed with its first chunk

        Raises:
            ValidationError: Missing table name (no connection acquired)
            ConnectionPoolError: No connection available
            TransferError: COPY failed before the first byte
        """
        command = build_export_command(params)
        statement = command.to_sql()
        logger.info("Export requested",
                   table=command.table_name,
                   columns=command.column_list,
                   filters=len(command.filters),
                   format=command.copy_format.value)

        connection = await self.pool.acquire()
        stream = ExportStream(
            BulkExecutor(connection).copy_out(statement),
            functools.partial(self.pool.release, connection),
            copy_format=command.copy_format,
        )

        try:
            await stream.prime()
        except BaseException:
            await stream.aclose()
            raise

        return stream

    async def import_from_host(self, params: QueryParams) -> int:
        """
        Relay import: fetch a COPY stream from `host` and load it into `to`.

        Every parameter except host/to is merged into the host URL's own
        query string.

        Raises:
            ValidationError: Missing `to`, missing or invalid `host`
            UpstreamError: Fetch failed, non-200 upstream, or body read failed
            ConnectionPoolError: No connection available
            TransferError: COPY FROM STDIN failed
        """
        command = build_import_command(params)
        statement = command.to_sql()
        forwarded = [
            (key, value)
            for key, values in params.items()
            if key not in RELAY_PARAMS
            for value in values
        ]
        url = self._upstream_url(params).copy_merge_params(forwarded)

        logger.info("Relay import requested",
                   host=str(url),
                   table=command.table_name,
                   format=command.copy_format.value)

        try:
            async with self.http_client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise await upstream_error(response)
                return await self._copy_in(statement, response.aiter_bytes())

        except httpx.HTTPError as e:
            logger.error("Upstream fetch failed", host=str(url), error=str(e))
            raise UpstreamError(f"fetching {url} failed: {e}") from e

    async def import_from_body(self, params: QueryParams, body: AsyncIterable[bytes]) -> int:
        """Load the inbound request body into `to`."""
        command = build_import_command(params)
        statement = command.to_sql()
        logger.info("Body import requested",
                   table=command.table_name,
                   format=command.copy_format.value)
        return await self._copy_in(statement, body)

    async def _copy_in(self, statement: str, source: AsyncIterable[bytes]) -> int:
        connection = await self.pool.acquire()
        try:
            return await BulkExecutor(connection).copy_in(statement, source)
        finally:
            await self.pool.release(connection)

    @staticmethod
    def _upstream_url(params: QueryParams) -> httpx.URL:
        host = get_param(params, "host")
        if host == "":
            raise ValidationError("host is required")

        try:
            url = httpx.URL(host)
        except httpx.InvalidURL as e:
            raise ValidationError(f"invalid host: {e}") from e

        if url.scheme not in ("http", "https") or not url.host:
            raise ValidationError(f"invalid host: {host}")
        return url
