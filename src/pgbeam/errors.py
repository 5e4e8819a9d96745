"""
Error taxonomy for pgbeam transfers.

Each error carries the HTTP status it maps to. The server turns any
PgBeamError into a plain-text response with that status; nothing is retried.
"""


class PgBeamError(Exception):
    """Base class for transfer failures surfaced to the HTTP caller."""

    status_code = 500


class ValidationError(PgBeamError):
    """Missing or malformed required input (client's fault)."""

    status_code = 400


class UpstreamError(PgBeamError):
    """
    A relay fetch to a caller-specified host failed or returned non-200.

    Attributes:
        upstream_status: HTTP status returned by the upstream, if any
    """

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class TransferError(PgBeamError):
    """The database COPY operation failed before or during streaming."""

    status_code = 500


class ConnectionPoolError(TransferError):
    """No connection could be checked out (pool exhausted or closed)."""
