"""
Unit Tests: Identifier and Literal Quoting

The quoting functions are the only injection boundary, so they are tested
for:
- Round-trip through PostgreSQL's quote-doubling rule
- Inputs containing quote characters (naive interpolation must differ)
- Empty strings, whitespace and non-ASCII input
"""

import pytest

from pgbeam.sql_builder import (
    quote_identifier,
    quote_literal,
    unquote_identifier,
    unquote_literal,
)

SAMPLES = [
    "",
    "age",
    "CamelCase",
    "with space",
    " trailing ",
    'double"quote',
    "single'quote",
    '""',
    "''",
    "'; DROP TABLE users; --",
    '"; DROP TABLE users; --',
    "semi;colon",
    "back\\slash",
    "new\nline",
    "ünïcødé 表",
]


@pytest.mark.unit
class TestQuoteIdentifier:
    """quote_identifier() wraps in double quotes and doubles embedded ones"""

    def test_simple_identifier(self):
        assert quote_identifier("age") == '"age"'

    def test_embedded_double_quote_doubled(self):
        assert quote_identifier('my"col') == '"my""col"'

    def test_single_quote_untouched(self):
        assert quote_identifier("it's") == '"it\'s"'

    def test_empty_string(self):
        assert quote_identifier("") == '""'

    def test_whitespace_preserved(self):
        assert quote_identifier(" b ") == '" b "'

    @pytest.mark.parametrize("raw", SAMPLES)
    def test_round_trip(self, raw):
        assert unquote_identifier(quote_identifier(raw)) == raw

    @pytest.mark.parametrize("raw", [s for s in SAMPLES if '"' in s])
    def test_naive_interpolation_differs(self, raw):
        assert quote_identifier(raw) != f'"{raw}"'

    def test_injection_attempt_stays_inside_identifier(self):
        quoted = quote_identifier('x" FROM secrets; --')
        # the only unescaped quotes are the delimiters
        assert quoted == '"x"" FROM secrets; --"'
        assert quoted[1:-1].replace('""', "").count('"') == 0


@pytest.mark.unit
class TestQuoteLiteral:
    """quote_literal() wraps in single quotes and doubles embedded ones"""

    def test_simple_literal(self):
        assert quote_literal("30") == "'30'"

    def test_embedded_single_quote_doubled(self):
        assert quote_literal("O'Brien") == "'O''Brien'"

    def test_double_quote_untouched(self):
        assert quote_literal('say "hi"') == "'say \"hi\"'"

    def test_empty_string(self):
        assert quote_literal("") == "''"

    @pytest.mark.parametrize("raw", SAMPLES)
    def test_round_trip(self, raw):
        assert unquote_literal(quote_literal(raw)) == raw

    @pytest.mark.parametrize("raw", [s for s in SAMPLES if "'" in s])
    def test_naive_interpolation_differs(self, raw):
        assert quote_literal(raw) != f"'{raw}'"

    def test_injection_attempt_stays_inside_literal(self):
        quoted = quote_literal("1' OR '1'='1")
        assert quoted == "'1'' OR ''1''=''1'"
        assert quoted[1:-1].replace("''", "").count("'") == 0


@pytest.mark.unit
class TestUnquote:
    """unquote_*() reject tokens that were never properly quoted"""

    @pytest.mark.parametrize("bad", ["age", '"age', 'age"', '"a"b"', '"'])
    def test_malformed_identifier(self, bad):
        with pytest.raises(ValueError):
            unquote_identifier(bad)

    @pytest.mark.parametrize("bad", ["30", "'30", "'a'b'", "'"])
    def test_malformed_literal(self, bad):
        with pytest.raises(ValueError):
            unquote_literal(bad)
