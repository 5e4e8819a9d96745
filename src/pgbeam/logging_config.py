"""
Logging configuration.

Every module logs through `structlog.get_logger()`; this sets up the
processors once per process (server or client entry point).
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """
    Configure structured logging for the process.

    Args:
        level: DEBUG | INFO | WARNING | ERROR
        fmt: "console" for human-readable lines, "json" for one JSON object per line
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # uvicorn and psycopg log through stdlib logging
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
