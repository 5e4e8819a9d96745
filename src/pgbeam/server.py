"""
pgbeam HTTP Server

Routes:
- GET  /tx  COPY TO STDOUT streamed as the response body (export)
- GET  /rx  fetch a COPY stream from `host`, COPY FROM STDIN into `to`
- POST /rx  COPY FROM STDIN into `to` from the request body
            (relays instead when `host` is given)

Every PgBeamError becomes a plain-text response carrying its status code.

Run with:
    DATABASE_URL=postgres://... python -m pgbeam.server
"""

import argparse
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Optional

import httpx
import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect

from . import __version__
from .config import ServerConfig, ensure_valid
from .connection_pool import ConnectionPool
from .copy_handler import CopyHandler
from .errors import PgBeamError, ValidationError
from .logging_config import configure_logging
from .sql_builder import QueryParams, get_param

logger = structlog.get_logger()


def query_params(request: Request) -> QueryParams:
    """Group query string values by name, keeping request order."""
    params: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, []).append(value)
    return params


def get_copy_handler(request: Request) -> CopyHandler:
    return CopyHandler(request.app.state.pool, request.app.state.http_client)


async def serve_error(request: Request, exc: PgBeamError) -> PlainTextResponse:
    logger.warning("Request failed",
                  path=request.url.path,
                  status=exc.status_code,
                  error_type=type(exc).__name__,
                  error=str(exc))
    return PlainTextResponse(str(exc), status_code=exc.status_code)


async def serve_copy_to(request: Request, handler: CopyHandler = Depends(get_copy_handler)):
    stream = await handler.export_table(query_params(request))
    return StreamingResponse(
        stream,
        media_type=stream.media_type,
        background=BackgroundTask(stream.aclose),
    )


async def serve_copy_from(request: Request, handler: CopyHandler = Depends(get_copy_handler)):
    params = query_params(request)

    if request.method == "POST" and get_param(params, "host") == "":
        try:
            rows = await handler.import_from_body(params, request.stream())
        except ClientDisconnect as e:
            raise ValidationError("client disconnected during upload") from e
    else:
        rows = await handler.import_from_host(params)

    return PlainTextResponse("OK", headers={"X-Rows-Affected": str(rows)})


def create_app(
    config: Optional[ServerConfig] = None,
    pool=None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Create the pgbeam FastAPI application.

    Injected collaborators are used as-is and never closed by the app.
    Missing ones are built from `config` at startup and closed on shutdown.

    Args:
        config: Server settings (defaults to ServerConfig.from_env())
        pool: Connection pool exposing acquire() / release(connection)
        http_client: Client used for relay fetches
    """
    config = config or ServerConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with AsyncExitStack() as stack:
            if app.state.pool is None:
                owned_pool = ConnectionPool(
                    config.database_url,
                    min_size=config.pool_min_size,
                    max_size=config.pool_max_size,
                    acquire_timeout=config.acquire_timeout,
                )
                await owned_pool.open()
                stack.push_async_callback(owned_pool.close)
                app.state.pool = owned_pool

            if app.state.http_client is None:
                owned_client = httpx.AsyncClient(timeout=config.upstream_timeout)
                stack.push_async_callback(owned_client.aclose)
                app.state.http_client = owned_client

            logger.info("pgbeam server starting", version=__version__)
            yield
            logger.info("pgbeam server stopping")

    app = FastAPI(title="pgbeam", version=__version__, lifespan=lifespan)
    app.state.pool = pool
    app.state.http_client = http_client

    app.add_exception_handler(PgBeamError, serve_error)
    app.add_api_route("/tx", serve_copy_to, methods=["GET"])
    app.add_api_route("/rx", serve_copy_from, methods=["GET", "POST"])

    return app


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pgbeam-server",
        description="Serve PostgreSQL COPY streams over HTTP",
    )
    parser.add_argument("--host", help="Bind address (PGBEAM_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (PGBEAM_PORT)")
    parser.add_argument("--database-url", help="PostgreSQL URL (DATABASE_URL)")
    parser.add_argument("--pool-max-size", type=int, help="Max concurrent transfers (PGBEAM_POOL_MAX_SIZE)")
    parser.add_argument("--log-level", help="DEBUG | INFO | WARNING | ERROR (PGBEAM_LOG_LEVEL)")
    parser.add_argument("--log-format", choices=["console", "json"], help="Log output format (PGBEAM_LOG_FORMAT)")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.database_url:
        config.database_url = args.database_url
    if args.pool_max_size is not None:
        config.pool_max_size = args.pool_max_size
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    ensure_valid(config)
    return config


def main(argv=None):
    config = load_config(parse_args(argv))
    configure_logging(config.log_level, config.log_format)

    logger.info("pgbeam server listening", host=config.host, port=config.port)
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
