"""
PostgreSQL Connection Pool

Thin acquire()/release() wrapper over psycopg_pool.AsyncConnectionPool.
Built once at process start and passed into CopyHandler explicitly.

Connections are opened in autocommit mode: each COPY statement is its own
transaction, so a failed COPY leaves the connection idle and reusable.
"""

import psycopg
import structlog
from psycopg_pool import AsyncConnectionPool, PoolClosed, PoolTimeout

from .errors import ConnectionPoolError

logger = structlog.get_logger()


class ConnectionPool:
    """
    Process-wide pool of PostgreSQL connections.

    Each transfer checks out exactly one connection for its full duration.
    `outstanding` counts connections currently checked out; it returns to its
    previous value after every completed request.
    """

    def __init__(
        self,
        conninfo: str,
        min_size: int = 1,
        max_size: int = 10,
        acquire_timeout: float = 30.0,
    ):
        self.acquire_timeout = acquire_timeout
        self._outstanding = 0
        self._pool = AsyncConnectionPool(
            conninfo,
            min_size=min_size,
            max_size=max_size,
            kwargs={"autocommit": True},
            open=False,
            name="pgbeam",
        )

    @property
    def outstanding(self) -> int:
        return self._outstanding

    async def open(self, wait: bool = False, timeout: float = 30.0):
        """Open the pool; with wait=True block until min_size connections exist."""
        await self._pool.open(wait=wait, timeout=timeout)
        logger.info("Connection pool opened",
                   min_size=self._pool.min_size,
                   max_size=self._pool.max_size)

    async def close(self):
        await self._pool.close()
        logger.info("Connection pool closed", outstanding=self._outstanding)

    async def acquire(self) -> psycopg.AsyncConnection:
        """Check out a connection; pool timeout or closure raises ConnectionPoolError."""
        try:
            connection = await self._pool.getconn(timeout=self.acquire_timeout)
        except PoolTimeout as e:
            logger.error("Connection pool exhausted",
                        timeout=self.acquire_timeout,
                        outstanding=self._outstanding,
                        error=str(e))
            raise ConnectionPoolError(f"connection pool exhausted: {e}") from e
        except PoolClosed as e:
            logger.error("Connection pool closed", error=str(e))
            raise ConnectionPoolError(f"connection pool closed: {e}") from e

        self._outstanding += 1
        logger.debug("Connection acquired", outstanding=self._outstanding)
        return connection

    async def release(self, connection: psycopg.AsyncConnection):
        """Return a connection to the pool (the pool resets or discards broken ones)."""
        self._outstanding -= 1
        await self._pool.putconn(connection)
        logger.debug("Connection released", outstanding=self._outstanding)
