# =============================================================================
# SAAS FINMODEL - PARSING TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.parsing import (
    parse_number, floor_count, floor_share, parse_count, round_money, safe_pct, parse_text
)


class TestParseNumber:
    """Tests for tolerant numeric parsing."""

    def test_plain_numbers(self):
        assert parse_number("5000") == 5000.0
        assert parse_number(12.5) == 12.5
        assert parse_number(7) == 7.0

    def test_currency_and_separators_stripped(self):
        """£, commas and % decoration should not block parsing."""
        assert parse_number("£5,000") == 5000.0
        assert parse_number("$1,234.50") == 1234.5
        assert parse_number("40%") == 40.0
        assert parse_number(" 2 500 ") == 2500.0

    def test_leading_numeric_prefix(self):
        """Trailing text after a number is ignored."""
        assert parse_number("12.5 leads") == 12.5
        assert parse_number("-3abc") == -3.0

    def test_unparsable_is_zero(self):
        """Garbage input coerces to 0 instead of raising."""
        assert parse_number("abc") == 0.0
        assert parse_number("") == 0.0
        assert parse_number(None) == 0.0

    def test_non_finite_is_default(self):
        assert parse_number(float("nan")) == 0.0
        assert parse_number(float("inf"), default=1.0) == 1.0


class TestCounts:
    """Tests for floor-based counts."""

    def test_floor(self):
        assert floor_count(2.99) == 2
        assert floor_count(200.0) == 200

    def test_plain_floor(self):
        """0.3 / 0.1 is 2.999... in binary floats and floors to 2."""
        assert floor_count(0.3 / 0.1) == 2
        assert floor_count(-0.5) == -1

    def test_floor_share(self):
        assert floor_share(1000, 14.1) == 141
        assert floor_share(100, 29) == 29
        assert floor_share(33, 40) == 13
        assert floor_share(float("nan"), 40) == 0

    def test_parse_count(self):
        assert parse_count("1,250.7") == 1250
        assert parse_count("x") == 0


class TestRounding:
    """Tests for currency rounding and percentages."""

    def test_half_up(self):
        assert round_money(2.675) == 2.68
        assert round_money(1041.6666) == 1041.67
        assert round_money(0.125) == 0.13

    def test_safe_pct(self):
        assert safe_pct(25, 100) == 25.0
        assert safe_pct(5, 0) == 0.0


class TestParseText:
    def test_text(self):
        assert parse_text("  Inbound ") == "Inbound"
        assert parse_text(None) == ""
        assert parse_text(float("nan")) == ""
        assert parse_text(42) == "42"
