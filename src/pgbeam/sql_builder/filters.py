"""
WHERE Filter Parsing

Turns `where.<column>.<op>` query parameters into FilterClause values.
Parsing happens before any SQL text is produced; FilterClause.to_sql() is the
only place a clause becomes text, and it quotes everything it emits.

Supported operators: eq, gt, gte, lt, lte, in.
Keys with any other shape, or an unknown operator, are ignored.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence, Union

import structlog

from .quoting import quote_identifier, quote_literal

logger = structlog.get_logger()

FILTER_PREFIX = "where."


class FilterOperator(Enum):
    """Comparison operators accepted in filter keys (suffix -> SQL token)"""
    EQ = ("eq", "=")
    GT = ("gt", ">")
    GTE = ("gte", ">=")
    LT = ("lt", "<")
    LTE = ("lte", "<=")
    IN = ("in", "IN")

    def __init__(self, suffix: str, sql_token: str):
        self.suffix = suffix
        self.sql_token = sql_token

    @classmethod
    def from_suffix(cls, suffix: str) -> "FilterOperator | None":
        for operator in cls:
            if operator.suffix == suffix:
                return operator
        return None


@dataclass(frozen=True)
class FilterClause:
    """
    A single column filter.

    Attributes:
        column: Raw (unquoted) column name
        operator: Comparison operator
        operand: Raw value for scalar operators, tuple of raw values for IN
    """
    column: str
    operator: FilterOperator
    operand: Union[str, tuple[str, ...]]

    def __post_init__(self):
        if (self.operator is FilterOperator.IN) != isinstance(self.operand, tuple):
            raise TypeError(
                f"operator {self.operator.suffix} does not accept operand {self.operand!r}"
            )

    def to_sql(self) -> str:
        if self.operator is FilterOperator.IN:
            predicate = "(" + ",".join(quote_literal(value) for value in self.operand) + ")"
        else:
            predicate = quote_literal(self.operand)
        return f"{quote_identifier(self.column)} {self.operator.sql_token} {predicate}"


def parse_filter(key: str, values: Sequence[str]) -> FilterClause | None:
    """
    Parse one query parameter into a FilterClause.

    Args:
        key: Parameter name, e.g. "where.age.gt"
        values: All values supplied for the key (only the first is used)

    Returns:
        FilterClause, or None if the key is not a well-formed filter
    """
    if not key.startswith(FILTER_PREFIX) or not values:
        return None

    phrase = key.split(".")
    if len(phrase) != 3:
        logger.debug("Ignoring malformed filter key", key=key)
        return None

    _, column, suffix = phrase
    operator = FilterOperator.from_suffix(suffix)
    if operator is None:
        logger.debug("Ignoring unknown filter operator", key=key, operator=suffix)
        return None

    first = values[0]
    if operator is FilterOperator.IN:
        return FilterClause(column, operator, tuple(first.split(",")))
    return FilterClause(column, operator, first)


def parse_filters(params: Mapping[str, Sequence[str]]) -> tuple[FilterClause, ...]:
    """Parse every filter parameter, in parameter order."""
    clauses = []
    for key, values in params.items():
        clause = parse_filter(key, values)
        if clause is not None:
            clauses.append(clause)
    return tuple(clauses)


def build_where_clause(clauses: Sequence[FilterClause]) -> str:
    """Join clauses with AND; empty string when there are none."""
    if not clauses:
        return ""
    return "WHERE " + " AND ".join(clause.to_sql() for clause in clauses)
