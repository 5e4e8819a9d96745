"""
Identifier and Literal Quoting for COPY Statements

Every piece of caller-supplied text that ends up in a COPY statement passes
through exactly one of the quoting functions below. Statements are fully
literal (no placeholders), so these functions are the injection boundary.

Quoting rules follow PostgreSQL:
- Identifiers: wrapped in double quotes, embedded double quotes doubled
- Literals: wrapped in single quotes, embedded single quotes doubled
"""


def quote_identifier(name: str) -> str:
    """
    Escape and quote an identifier for interpolation into SQL.

    Any string becomes a syntactically valid identifier, including the empty
    string and strings with leading/trailing whitespace (no trimming, no
    charset or length checks).

    Args:
        name: Raw identifier text

    Returns:
        Quoted identifier, e.g. 'my"col' -> '"my""col"'
    """
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """
    Escape and quote a string value for interpolation into SQL.

    Args:
        value: Raw value text

    Returns:
        Quoted literal, e.g. "O'Brien" -> "'O''Brien'"
    """
    return "'" + value.replace("'", "''") + "'"


def _unquote(quoted: str, quote_char: str) -> str:
    if len(quoted) < 2 or quoted[0] != quote_char or quoted[-1] != quote_char:
        raise ValueError(f"not a {quote_char}-quoted token: {quoted!r}")

    body = quoted[1:-1]
    doubled = quote_char * 2
    # A lone quote inside the body means the token was never escaped
    if body.replace(doubled, "").count(quote_char):
        raise ValueError(f"unescaped {quote_char} inside quoted token: {quoted!r}")
    return body.replace(doubled, quote_char)


def unquote_identifier(quoted: str) -> str:
    """
    Reverse quote_identifier() using PostgreSQL's unescaping rule.

    Raises:
        ValueError: Input is not a well-formed quoted identifier
    """
    return _unquote(quoted, '"')


def unquote_literal(quoted: str) -> str:
    """
    Reverse quote_literal() using PostgreSQL's unescaping rule.

    Raises:
        ValueError: Input is not a well-formed quoted literal
    """
    return _unquote(quoted, "'")
