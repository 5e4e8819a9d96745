"""
COPY Statement Construction

Translates untrusted HTTP query parameters into fully literal COPY
statements. All caller text is quoted through sql_builder.quoting.
"""

from .copy_statement import (
    CopyCommand,
    CopyDirection,
    CopyFormat,
    QueryParams,
    build_export_command,
    build_import_command,
    get_param,
)
from .filters import FilterClause, FilterOperator, build_where_clause, parse_filter, parse_filters
from .quoting import (
    quote_identifier,
    quote_literal,
    unquote_identifier,
    unquote_literal,
)

__all__ = [
    "CopyCommand",
    "CopyDirection",
    "CopyFormat",
    "QueryParams",
    "build_export_command",
    "build_import_command",
    "get_param",
    "FilterClause",
    "FilterOperator",
    "build_where_clause",
    "parse_filter",
    "parse_filters",
    "quote_identifier",
    "quote_literal",
    "unquote_identifier",
    "unquote_literal",
]
