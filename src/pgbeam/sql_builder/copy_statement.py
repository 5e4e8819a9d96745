"""
COPY Statement Builder

Builds COPY TO STDOUT / COPY FROM STDIN statements from HTTP query
parameters. Statements are fully literal: every identifier and value is
quoted via sql_builder.quoting before it is spliced in.

Export:
    COPY "t" TO STDOUT                                   (fast path)
    COPY (SELECT "a","b" FROM "t" WHERE "a" > '1') TO STDOUT WITH (FORMAT csv, HEADER true)

Import:
    COPY "t" ("a","b") FROM STDIN WITH (FORMAT binary)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence

from ..errors import ValidationError
from .filters import FilterClause, build_where_clause, parse_filters
from .quoting import quote_identifier

QueryParams = Mapping[str, Sequence[str]]


class CopyDirection(Enum):
    """COPY operation direction"""
    TO_STDOUT = "TO STDOUT"
    FROM_STDIN = "FROM STDIN"


class CopyFormat(Enum):
    """COPY payload format (the engine is the only interpreter of the bytes)"""
    TEXT = "text"
    BINARY = "binary"
    CSV = "csv"

    @property
    def with_options(self) -> str:
        if self is CopyFormat.CSV:
            return "WITH (FORMAT csv, HEADER true)"
        if self is CopyFormat.BINARY:
            return "WITH (FORMAT binary)"
        # engine default, no WITH clause
        return ""

    @property
    def media_type(self) -> str:
        if self is CopyFormat.CSV:
            return "text/csv"
        return "application/octet-stream"


@dataclass(frozen=True)
class CopyCommand:
    """
    A validated COPY request.

    Attributes:
        table_name: Raw (unquoted) table name
        direction: TO_STDOUT for export, FROM_STDIN for import
        column_list: Raw column names, or None for all columns
        filters: Parsed WHERE clauses (export only)
        copy_format: Payload format
    """
    table_name: str
    direction: CopyDirection
    column_list: Optional[tuple[str, ...]] = None
    filters: tuple[FilterClause, ...] = field(default_factory=tuple)
    copy_format: CopyFormat = CopyFormat.TEXT

    def quoted_columns(self) -> str:
        if not self.column_list:
            return "*"
        return ",".join(quote_identifier(column) for column in self.column_list)

    def source_sql(self) -> str:
        """
        Export source: bare quoted table, or a SELECT subquery when the
        request has columns or filters.
        """
        table = quote_identifier(self.table_name)
        if not self.column_list and not self.filters:
            return table

        query = f"SELECT {self.quoted_columns()} FROM {table}"
        where = build_where_clause(self.filters)
        if where:
            query = f"{query} {where}"
        return f"({query})"

    def target_sql(self) -> str:
        """Import target: quoted table plus optional column list."""
        table = quote_identifier(self.table_name)
        if not self.column_list:
            return table
        return f"{table} ({self.quoted_columns()})"

    def to_sql(self) -> str:
        if self.direction is CopyDirection.TO_STDOUT:
            parts = ["COPY", self.source_sql(), self.direction.value]
        else:
            parts = ["COPY", self.target_sql(), self.direction.value]

        options = self.copy_format.with_options
        if options:
            parts.append(options)
        return " ".join(parts)


def get_param(params: QueryParams, key: str) -> str:
    """First value of a parameter, or "" when absent."""
    values = params.get(key)
    if not values:
        return ""
    return values[0]


def parse_column_list(params: QueryParams) -> Optional[tuple[str, ...]]:
    """
    Split `select` on commas.

    Tokens are kept verbatim (no whitespace trimming); an empty `select`
    means all columns.
    """
    column_list = get_param(params, "select")
    if column_list == "":
        return None
    return tuple(column_list.split(","))


def parse_copy_format(params: QueryParams) -> CopyFormat:
    """`csv` wins over `binary`; a flag counts only with a non-empty value."""
    if get_param(params, "csv") != "":
        return CopyFormat.CSV
    if get_param(params, "binary") != "":
        return CopyFormat.BINARY
    return CopyFormat.TEXT


def build_export_command(params: QueryParams) -> CopyCommand:
    """Build a COPY TO STDOUT command; a missing `table` raises ValidationError."""
    table_name = get_param(params, "table")
    if table_name == "":
        raise ValidationError("invalid table name")

    return CopyCommand(
        table_name=table_name,
        direction=CopyDirection.TO_STDOUT,
        column_list=parse_column_list(params),
        filters=parse_filters(params),
        copy_format=parse_copy_format(params),
    )


def build_import_command(params: QueryParams) -> CopyCommand:
    """
    Build a COPY FROM STDIN command from import parameters.

    Filters never apply to an import.

    Raises:
        ValidationError: `to` missing or empty
    """
    table_name = get_param(params, "to")
    if table_name == "":
        raise ValidationError("to is required")

    return CopyCommand(
        table_name=table_name,
        direction=CopyDirection.FROM_STDIN,
        column_list=parse_column_list(params),
        copy_format=parse_copy_format(params),
    )
