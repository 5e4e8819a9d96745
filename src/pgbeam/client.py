"""
pgbeam Polling Client

Every `interval` seconds:
  1. GET the export endpoint of a pgbeam server (streamed)
  2. TRUNCATE the local target table
  3. COPY the response body into it

Steps 2 and 3 share one transaction, so a failed load keeps the previous
contents. A failed cycle is logged and abandoned; the next cycle is the
only retry.

Run with:
    DATABASE_URL=postgres://... pgbeam-client --endpoint 'http://host:2001/tx?table=event' --target event_copy
"""

import argparse
import asyncio
from typing import Optional

import httpx
import psycopg
import structlog

from .bulk_executor import BulkExecutor
from .config import ClientConfig, ensure_valid
from .copy_handler import upstream_error
from .errors import PgBeamError, TransferError, UpstreamError
from .logging_config import configure_logging
from .sql_builder import CopyCommand, CopyDirection, CopyFormat, quote_identifier

logger = structlog.get_logger()


class PollingClient:
    """Periodically mirrors a remote pgbeam export into a local table."""

    def __init__(
        self,
        config: ClientConfig,
        copy_format: CopyFormat = CopyFormat.TEXT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            config: Client settings
            copy_format: Format of the exported body; must match the endpoint's
                csv/binary flags
            http_client: Client for the export request (created per run if None)
        """
        self.config = config
        self.copy_format = copy_format
        self.http_client = http_client
        self.connection: Optional[psycopg.AsyncConnection] = None

    def copy_statement(self) -> str:
        command = CopyCommand(
            table_name=self.config.target_table,
            direction=CopyDirection.FROM_STDIN,
            copy_format=self.copy_format,
        )
        return command.to_sql()

    async def connect(self):
        if self.connection is None or self.connection.closed:
            self.connection = await psycopg.AsyncConnection.connect(
                self.config.database_url, autocommit=True
            )
            logger.info("Client connected to database")

    async def close(self):
        if self.connection is not None:
            await self.connection.close()
            self.connection = None

    async def run_once(self) -> int:
        """
        Run one fetch-truncate-load cycle.

        Returns:
            Number of rows loaded

        Raises:
            UpstreamError: Export request failed or returned non-200
            TransferError: TRUNCATE or COPY failed
        """
        if self.http_client is None:
            raise RuntimeError("run_once() needs an http_client; use run_forever() or pass one in")
        await self.connect()
        endpoint = self.config.endpoint
        target = quote_identifier(self.config.target_table)
        logger.info("Fetching export", endpoint=endpoint)

        try:
            async with self.http_client.stream("GET", endpoint) as response:
                if response.status_code != 200:
                    raise await upstream_error(response)

                try:
                    async with self.connection.transaction():
                        await self.connection.execute(f"TRUNCATE {target}")
                        executor = BulkExecutor(self.connection)
                        rows = await executor.copy_in(self.copy_statement(), response.aiter_bytes())
                except psycopg.Error as e:
                    raise TransferError(str(e)) from e

        except httpx.HTTPError as e:
            raise UpstreamError(f"fetching {endpoint} failed: {e}") from e

        logger.info("Cycle complete", rows=rows, target=self.config.target_table)
        return rows

    async def run_forever(self, max_cycles: Optional[int] = None):
        """
        Loop run_once() every `interval` seconds.

        Args:
            max_cycles: Stop after this many cycles (None = forever)
        """
        owns_client = self.http_client is None
        if owns_client:
            self.http_client = httpx.AsyncClient(timeout=None)

        cycles = 0
        try:
            while max_cycles is None or cycles < max_cycles:
                cycles += 1
                try:
                    await self.run_once()
                except PgBeamError as e:
                    logger.error("Cycle aborted",
                                cycle=cycles,
                                error_type=type(e).__name__,
                                error=str(e))
                except psycopg.OperationalError as e:
                    logger.error("Cycle aborted, database unavailable", cycle=cycles, error=str(e))
                    await self.close()

                if max_cycles is None or cycles < max_cycles:
                    await asyncio.sleep(self.config.interval)
        finally:
            await self.close()
            if owns_client:
                await self.http_client.aclose()
                self.http_client = None


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pgbeam-client",
        description="Periodically mirror a pgbeam export into a local table",
    )
    parser.add_argument("--endpoint", help="Export URL, e.g. http://host:2001/tx?table=event (PGBEAM_ENDPOINT)")
    parser.add_argument("--target", help="Local destination table (PGBEAM_TARGET)")
    parser.add_argument("--database-url", help="Local PostgreSQL URL (DATABASE_URL)")
    parser.add_argument("--interval", type=float, help="Seconds between cycles (PGBEAM_INTERVAL)")
    format_group = parser.add_mutually_exclusive_group()
    format_group.add_argument("--csv", action="store_true", help="Endpoint serves CSV with header")
    format_group.add_argument("--binary", action="store_true", help="Endpoint serves binary COPY")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--log-level", help="DEBUG | INFO | WARNING | ERROR (PGBEAM_LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = ClientConfig.from_env()
    if args.endpoint:
        config.endpoint = args.endpoint
    if args.target:
        config.target_table = args.target
    if args.database_url:
        config.database_url = args.database_url
    if args.interval is not None:
        config.interval = args.interval
    if args.log_level:
        config.log_level = args.log_level
    ensure_valid(config)
    configure_logging(config.log_level, config.log_format)

    copy_format = CopyFormat.TEXT
    if args.csv:
        copy_format = CopyFormat.CSV
    elif args.binary:
        copy_format = CopyFormat.BINARY

    client = PollingClient(config, copy_format=copy_format)
    try:
        asyncio.run(client.run_forever(max_cycles=1 if args.once else None))
    except KeyboardInterrupt:
        logger.info("Client stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
